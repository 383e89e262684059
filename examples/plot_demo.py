"""Minimal demonstration of the plot generation loop."""

from plot_agent import get_default_service

if __name__ == "__main__":
    service = get_default_service()
    session_id = service.create_session()
    data = '{"x": [1, 2, 3], "y": [4, 5, 6]}'
    print("Plot:", service.start_new_plot(session_id, data, "Create a scatter plot"))
    print("Update:", service.refine_plot(session_id, "Change the marker color to blue"))
    for message in service.current_conversation(session_id):
        print(f"[{message['role']}] {message['content'][:80]}")
