from __future__ import annotations

_ESCAPES: dict[str, str] = {
    "\\": "%5c",
    "<": "%3c",
    ">": "%3e",
    '"': "%22",
    "/": "%2f",
    "|": "%7c",
    "?": "%3f",
    "*": "%2a",
    "%": "%25",
}


def platform_name(name: str) -> str:
    """Map one repository name segment to its on-disk form.

    ``jcr:content`` becomes ``_jcr_content``. A name that already looks like an
    escaped namespace (``_a_b``) gains an extra leading underscore so the mapping
    stays reversible. Characters illegal in file names are percent-escaped.
    """
    buf: list[str] = ["_"]
    escape_colon = False
    use_underscore = False
    num_underscore = 0
    for i, ch in enumerate(name):
        if ch == ":":
            if not escape_colon and i > 0:
                escape_colon = True
                use_underscore = True
                num_underscore = 2
                buf.append("_")
            else:
                buf.append("%3a")
        elif ch == "_":
            if i == 0:
                use_underscore = True
            num_underscore += 1
            escape_colon = True
            buf.append(ch)
        else:
            buf.append(_ESCAPES.get(ch, ch))

    out = "".join(buf)
    if use_underscore and num_underscore > 1:
        return out
    return out[1:]


def platform_path(path: str) -> str:
    return "/".join(platform_name(seg) if seg else seg for seg in path.split("/"))
