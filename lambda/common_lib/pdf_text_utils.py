"""
Text measurement and wrapping on top of reportlab font metrics
"""

from reportlab.pdfbase.pdfmetrics import stringWidth

ELLIPSIS = '...'


def measure_width(font, size, text):
    """Rendered width of text in points"""
    return stringWidth(text or '', font, size)


def wrap_text(text, max_width, font, size):
    """
    Greedy word wrap.

    Words are accumulated while the joined line still fits max_width; the
    word that overflows starts the next line. A word wider than max_width is
    placed alone on its own line rather than hyphenated. Words are split on
    single spaces, so ' '.join(result) == text for any input.

    Returns:
        list: wrapped lines (empty for empty text)
    """
    if max_width <= 0:
        raise ValueError("max_width must be positive")
    if not text:
        return []

    lines = []
    current = None
    for word in text.split(' '):
        if current is None:
            current = word
            continue
        candidate = f"{current} {word}"
        if measure_width(font, size, candidate) <= max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


def truncate_to_width(text, max_width, font, size):
    """Clamp a single-line cell value to max_width, ending in an ellipsis when cut"""
    text = text or ''
    if measure_width(font, size, text) <= max_width:
        return text
    ellipsis_width = measure_width(font, size, ELLIPSIS)
    cut = len(text)
    while cut > 0 and measure_width(font, size, text[:cut]) + ellipsis_width > max_width:
        cut -= 1
    return text[:cut].rstrip() + ELLIPSIS
