"""TUI composer for scribe chat.

Requires the ``chat`` extra::

    pip install 'scribe-composer[chat]'
"""

from __future__ import annotations


def require_textual() -> None:
    """Raise a clear error if textual is not installed."""
    try:
        import textual  # noqa: F401
    except ImportError as exc:
        raise SystemExit(
            "The 'textual' package is required for scribe chat.\n" "Install it with: pip install 'scribe-composer[chat]'"
        ) from exc
