"""
Block Document helpers.

A rule description is a sequence of typed blocks. Two JSON forms are accepted:

    the editor's block array (BlockNote)::

        [{"id": "...", "type": "paragraph", "props": {...},
          "content": [{"type": "text", "text": "...", "styles": {...}}],
          "children": [...]},
         ...]

    a document tree::

        {"type": "doc", "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": "...", "marks": [...]}]},
            ...
        ]}

Only the shape is checked here; block types, props and styles are owned by the editor.
"""

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

BlockDocument = Union[Dict[str, Any], List[Dict[str, Any]]]


def empty_document() -> Dict[str, Any]:
    return {"type": "doc", "content": []}


def text_document(text: str) -> List[Dict[str, Any]]:
    """A single paragraph holding ``text``, in the editor's block array form."""
    return [{"type": "paragraph", "content": [{"type": "text", "text": text}]}]


class DescriptionSummary(BaseModel):
    """Lightweight stand-in for a description inside a history entry."""
    block_count: int
    text_preview: str


def _check_node(node: Any, path: str) -> None:
    if not isinstance(node, dict):
        raise ValueError(f"{path} must be an object")
    if not isinstance(node.get("type"), str):
        raise ValueError(f"{path}.type must be a string")
    if "text" in node and not isinstance(node["text"], str):
        raise ValueError(f"{path}.text must be a string")
    if "marks" in node and not isinstance(node["marks"], list):
        raise ValueError(f"{path}.marks must be a list")
    if "styles" in node and not isinstance(node["styles"], dict):
        raise ValueError(f"{path}.styles must be an object")
    if "props" in node and not isinstance(node["props"], dict):
        raise ValueError(f"{path}.props must be an object")

    content = node.get("content")
    if isinstance(content, dict):
        # Table blocks keep their rows in a typed object
        _check_node(content, f"{path}.content")
    elif content is not None:
        _check_nodes(content, f"{path}.content")

    children = node.get("children")
    if children is not None:
        _check_nodes(children, f"{path}.children")


def _check_nodes(nodes: Any, path: str) -> None:
    if not isinstance(nodes, list):
        raise ValueError(f"{path} must be a list")
    for index, child in enumerate(nodes):
        _check_node(child, f"{path}[{index}]")


def coerce_document(value: Any) -> BlockDocument:
    """
    Normalize an incoming description into a Block Document.

    Accepts a block array, a document dict, the JSON string form of either,
    or None/"" for an empty document. A string that is not a JSON block
    structure is plain text and becomes a one-paragraph document. Raises
    ValueError for anything else.
    """
    if value is None or value == "":
        return empty_document()
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return text_document(value)
        if not isinstance(parsed, (dict, list)):
            return text_document(value)
        value = parsed

    if isinstance(value, list):
        _check_nodes(value, "description")
    else:
        _check_node(value, "description")
    return value


def top_level_blocks(document: Optional[BlockDocument]) -> List[Dict[str, Any]]:
    if not document:
        return []
    blocks = document if isinstance(document, list) else document.get("content") or []
    return [block for block in blocks if isinstance(block, dict)]


def _run_text(run: Dict[str, Any]) -> str:
    if isinstance(run.get("text"), str):
        return run["text"]
    # Links wrap their own text runs
    if run.get("type") == "link" and isinstance(run.get("content"), list):
        return "".join(_run_text(inner) for inner in run["content"] if isinstance(inner, dict))
    return ""


def plain_text(block: Dict[str, Any]) -> str:
    """Concatenate the text runs directly inside a block."""
    runs = block.get("content")
    if not isinstance(runs, list):
        return ""
    return "".join(_run_text(run) for run in runs if isinstance(run, dict))


def summarize_description(document: Any, preview_length: int = 50) -> DescriptionSummary:
    """
    Reduce a document to its block count and a short preview of the first block.

    The preview is truncated to ``preview_length`` characters and marked with
    "..." when cut.
    """
    if isinstance(document, str):
        document = coerce_document(document)
    blocks = top_level_blocks(document)
    preview = plain_text(blocks[0]) if blocks else ""
    if len(preview) > preview_length:
        preview = preview[:preview_length] + "..."
    return DescriptionSummary(block_count=len(blocks), text_preview=preview)


def documents_equal(left: Any, right: Any) -> bool:
    """Deep structural equality; summaries are never used for this decision."""
    left = coerce_document(left)
    right = coerce_document(right)
    if not top_level_blocks(left) and not top_level_blocks(right):
        return True
    return left == right
