"""Argument splitting for command text.

Arguments are separated by whitespace. Double quotes group text with spaces
into a single argument, and the quotes are dropped:

    cmd abc "Cool Text!" 123  ->  ["cmd", "abc", "Cool Text!", "123"]

A backslash directly before a quote produces a literal quote. A quote that is
never closed runs to the end of the input.
"""


def tokenize(raw):
    """Split raw text into a list of arguments."""
    tokens = []
    current = []
    in_token = False
    quoted = False

    idx = 0
    length = len(raw)
    while idx < length:
        char = raw[idx]
        if char == "\\" and idx + 1 < length and raw[idx + 1] == '"':
            current.append('"')
            in_token = True
            idx += 2
            continue
        if char == '"':
            quoted = not quoted
            # An empty pair of quotes still makes a token
            in_token = True
        elif char.isspace() and not quoted:
            if in_token:
                tokens.append("".join(current))
                current = []
                in_token = False
        else:
            current.append(char)
            in_token = True
        idx += 1

    if in_token:
        tokens.append("".join(current))
    return tokens


def _name_end(raw):
    """Index just past the first token of an lstripped string."""
    quoted = False
    idx = 0
    while idx < len(raw):
        char = raw[idx]
        if char == "\\" and raw[idx + 1:idx + 2] == '"':
            idx += 2
            continue
        if char == '"':
            quoted = not quoted
        elif char.isspace() and not quoted:
            return idx
        idx += 1
    return idx


def split_command(raw):
    """Split command text into (name, args, raw_args).

    raw_args is everything after the command name, with only the whitespace
    separating it from the name removed. Handlers that care about exact
    quoting or spacing should read that instead of args.
    """
    stripped = raw.lstrip()
    if not stripped:
        return None, [], ""

    end = _name_end(stripped)
    name_tokens = tokenize(stripped[:end])
    raw_args = stripped[end:].lstrip()
    name = name_tokens[0] if name_tokens else ""
    return name, tokenize(raw_args), raw_args
