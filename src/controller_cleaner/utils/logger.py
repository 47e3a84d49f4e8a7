"""Terminal-safe output handling with Unicode fallback.

Detects terminal encoding and provides ASCII alternatives for the glyphs
used in cleanup summaries, so non-UTF-8 consoles never crash on output.
"""
import sys
import locale


# Unicode to ASCII glyph mapping for legacy terminals
ICON_MAP = {
    # Status icons
    '✓': '[OK]',
    '✔': '[OK]',
    '✗': '[FAIL]',
    '✘': '[FAIL]',
    '⚠': '[WARN]',

    # Progress/action icons
    '→': '->',
    '←': '<-',
    '⇒': '=>',

    # Structural icons
    '│': '|',
    '─': '-',
    '└': '+',
    '├': '+',

    # Symbols
    '…': '...',
    '•': '*',
    '▸': '>',
    '🧹': '[cleaner]',
}


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding capability.

    Returns:
        str: Terminal encoding ('utf-8', 'cp1252', 'ascii', etc.)
    """
    if hasattr(sys.stdout, 'encoding') and sys.stdout.encoding:
        return sys.stdout.encoding.lower()

    try:
        return locale.getpreferredencoding().lower()
    except (ValueError, LookupError):
        pass

    return 'ascii'


def is_utf8_capable() -> bool:
    """Check if the terminal can handle UTF-8 Unicode characters.

    Returns:
        bool: True if terminal supports UTF-8, False otherwise
    """
    return detect_terminal_encoding().replace('_', '-') in ('utf-8', 'utf8')


def sanitize_for_terminal(text: str) -> str:
    """Replace Unicode glyphs with ASCII equivalents if terminal doesn't support UTF-8.

    Args:
        text: Text potentially containing Unicode glyphs

    Returns:
        str: Sanitized text safe for current terminal
    """
    if is_utf8_capable():
        return text

    sanitized = text
    for unicode_char, ascii_replacement in ICON_MAP.items():
        sanitized = sanitized.replace(unicode_char, ascii_replacement)

    return sanitized
