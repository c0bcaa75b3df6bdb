def to_wire(text):
    """
    Bytes with CRLF line endings, as iCalendar and vCard want them on the
    wire, no matter if we were given bytes or str
    """
    if text is None:
        return None
    if isinstance(text, str):
        text = bytes(text, "utf-8")
    text = text.replace(b"\r\n", b"\n")
    text = text.replace(b"\n", b"\r\n")
    return text


def to_unicode(text):
    if text and isinstance(text, bytes):
        return text.decode("utf-8")
    return text
