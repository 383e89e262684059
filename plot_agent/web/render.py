"""HTML 页面片段。

页面通过 CDN 加载 Plotly.js，图表规格以内联脚本交给 Plotly.newPlot 渲染。
"""

import json
from html import escape
from typing import Any, Dict, Iterable

PLOTLY_CDN = "https://cdn.plot.ly/plotly-latest.min.js"

_STYLE = (
    "body { font-family: sans-serif; margin: 2em; } "
    "textarea { width: 100%; } "
    "pre { background-color: #f4f4f4; padding: 1em; } "
    ".error { color: #a40000; }"
)

DATA_PLACEHOLDER = '{"x": [1, 2, 3], "y": [4, 5, 6]}'


def _script_json(value: Any) -> str:
    # 防止数据中的 "</script>" 提前结束脚本块
    return json.dumps(value, ensure_ascii=False).replace("</", "<\\/")


def layout(title: str, *content: str) -> str:
    return (
        "<!DOCTYPE html>\n<html><head>"
        '<meta charset="UTF-8">'
        f"<title>{escape(title)}</title>"
        f'<script src="{PLOTLY_CDN}"></script>'
        f"<style>{_STYLE}</style>"
        "</head><body>"
        f"<h1>{escape(title)}</h1>"
        '<nav><a href="/">New plot</a> | <a href="/gallery">Gallery</a></nav>'
        + "".join(content)
        + "</body></html>"
    )


def render_initial_form() -> str:
    return (
        '<div><form action="/generate" method="post">'
        "<div><label>Initial Data (JSON):</label><br>"
        f'<textarea name="data" rows="4" cols="50" placeholder="{escape(DATA_PLACEHOLDER)}"></textarea></div>'
        "<div><label>Plot Instructions:</label><br>"
        '<textarea name="instruction" rows="4" cols="50" placeholder="Create a line chart."></textarea></div>'
        '<div><input type="submit" value="Generate Plot"></div>'
        "</form></div>"
    )


def render_update_form() -> str:
    return (
        '<div><form action="/update" method="post">'
        "<div><label>Update Instruction:</label><br>"
        '<textarea name="instruction" rows="4" cols="50" placeholder="e.g., Change the marker color."></textarea></div>'
        '<div><input type="submit" value="Update Plot"></div>'
        "</form></div>"
    )


def render_result(plot_spec: Dict[str, Any], element_id: str = "plot") -> str:
    """展示图表 JSON 并渲染 Plotly 图。"""
    pretty = json.dumps(plot_spec, ensure_ascii=False, indent=2)
    return (
        "<div>"
        "<h2>Generated Plotly Plot Specification (JSON)</h2>"
        f"<pre>{escape(pretty)}</pre>"
        f'<div id="{escape(element_id)}" style="width:100%;height:400px;"></div>'
        f"<script>var plotSpec = {_script_json(plot_spec)};"
        f"Plotly.newPlot({_script_json(element_id)}, plotSpec.data, plotSpec.layout);</script>"
        "</div>"
    )


def render_diagnostic(text: str) -> str:
    return (
        "<div>"
        "<h2>No plot was produced</h2>"
        f'<pre class="error">{escape(text)}</pre>'
        "</div>"
    )


def render_gallery(entries: Iterable[Dict[str, Any]]) -> str:
    parts = []
    for entry in entries:
        idx = entry["index"]
        parts.append(
            "<section>"
            f"<h3>#{idx + 1}: {escape(entry['instruction'])}</h3>"
            f"<p>Data: <code>{escape(entry['raw_input'])}</code></p>"
            + render_result(entry["artifact"], element_id=f"plot-{idx}")
            + "</section>"
        )
    if not parts:
        return "<p>No accepted plots yet.</p>"
    return "".join(parts)
