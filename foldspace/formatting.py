from collections.abc import Sequence

from foldspace.models import Annotation

HEADER = "--- Annotations from Foldspace Console ---"
FOOTER = "--- End annotations ---"


def quote(text: str) -> str:
    return "> " + text.replace("\n", "\n> ")


def format_annotations(annotations: Sequence[Annotation]) -> str:
    """Render pending annotations as the block injected ahead of the next prompt."""
    if not annotations:
        return ""
    blocks = [
        f"\n[{i}] On text:\n{quote(a.selected_text)}\n\nComment: {a.comment}\n"
        for i, a in enumerate(annotations, start=1)
    ]
    return f"{HEADER}\n" + "\n".join(blocks) + f"\n{FOOTER}"
