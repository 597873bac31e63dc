"""Split a command line into words."""

from __future__ import annotations

import re

# A single-quoted run, a double-quoted run, or a bare word, plus trailing blanks.
_WORD = re.compile(r"""(?:'(.*?)'|"(.*?)"|(\S+))\s*""", re.DOTALL)


def tokenize(line: str) -> list[str]:
    """Return the words of *line*.

    Quotes group whitespace into one word and are stripped; there are no
    escapes. An unmatched quote is part of an ordinary word.
    """
    words: list[str] = []
    pos = len(line) - len(line.lstrip())
    while pos < len(line):
        match = _WORD.match(line, pos)
        if match is None:
            break
        single, double, bare = match.groups()
        if single is not None:
            words.append(single)
        elif double is not None:
            words.append(double)
        else:
            words.append(bare)
        pos = match.end()
    return words
