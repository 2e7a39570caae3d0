"""Minimal HTML pages shown during the login round trip."""

from __future__ import annotations

import json
from html import escape

COMMON_CSS = """
    body { color: #FFF; background-color: #444; }
    a { color: #8F8; }
    textarea { color: #FFF; background-color: #222; width: 100%; }
    button { color: #FFF; background-color: #333; }
"""

_WRITE_COMMENT_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>{title}</title>
    <style>{css}</style>
</head>
<body>
    <h1>{title}</h1>
    <img width="64" height="64" src="{avatar}" alt=""> <b>{name}</b>
    <a href="{profile}">(User Profile)</a><br>
    <textarea id="comment_text" rows="10" autofocus>{text}</textarea><br>
    <button id="comment_submit_button">Submit</button>
    <script>
        "use strict";
        const submission = {submission};
        document.getElementById("comment_submit_button").addEventListener("click", async () => {{
            submission.comment_text = document.getElementById("comment_text").value;
            const response = await fetch(submission.submit_url, {{
                method: "POST",
                headers: {{"Content-Type": "application/json"}},
                body: JSON.stringify({{
                    state: submission.state,
                    comment_text: submission.comment_text,
                }}),
            }});
            if (response.ok) {{
                window.location = submission.blog_url;
            }} else {{
                alert("Failed to submit comment (" + response.status + ")");
            }}
        }});
    </script>
</body>
</html>
"""


def render_write_comment_page(
    *,
    title: str,
    state: str,
    submit_url: str,
    blog_url: str,
    user_name: str,
    user_profile_url: str,
    user_avatar_url: str,
    text: str = "",
) -> str:
    """Return the page where an authenticated commenter types their comment."""
    submission = json.dumps(
        {"state": state, "submit_url": submit_url, "blog_url": blog_url}
    ).replace("</", "<\\/")
    return _WRITE_COMMENT_PAGE.format(
        title=escape(title),
        css=COMMON_CSS,
        avatar=escape(user_avatar_url),
        name=escape(user_name),
        profile=escape(user_profile_url),
        text=escape(text),
        submission=submission,
    )
