from __future__ import annotations

from ..output import Language
from .base import EngineOutput

MARKUP_NOTICE = "HTML preview would be rendered in browser"
STYLESHEET_NOTICE = "CSS styles would be applied to HTML elements"


class MarkupEngine:
    """Markup has nothing to execute; the host renders it.

    Example:
        ```python
        out = MarkupEngine().run("<h1>hi</h1>")
        ```
    """

    language = Language.MARKUP
    isolated = False

    def run(self, code: str) -> EngineOutput:
        """Return the fixed markup notice.

        Example:
            ```python
            assert MarkupEngine().run("<p>").output == MARKUP_NOTICE
            ```
        """
        return EngineOutput(output=MARKUP_NOTICE)


class StyleSheetEngine:
    """Stylesheets have nothing to execute; the host applies them.

    Example:
        ```python
        out = StyleSheetEngine().run("body { margin: 0; }")
        ```
    """

    language = Language.STYLESHEET
    isolated = False

    def run(self, code: str) -> EngineOutput:
        """Return the fixed stylesheet notice.

        Example:
            ```python
            assert StyleSheetEngine().run("").output == STYLESHEET_NOTICE
            ```
        """
        return EngineOutput(output=STYLESHEET_NOTICE)
