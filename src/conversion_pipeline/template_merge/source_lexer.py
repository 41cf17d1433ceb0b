"""Literal and comment scanning for C# sources and Razor views.

The lexer is an explicit state machine. Its only job is to find the spans
of comments and literals so that structural characters inside them (braces,
semicolons, quotes) never count as code. `LexResult.masked` is the source with
every such span blanked to spaces, newlines kept, so offsets stay aligned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class LexState(Enum):
    """Scanner states."""

    CODE = "code"
    LINE_COMMENT = "line-comment"
    BLOCK_COMMENT = "block-comment"
    STRING = "string"
    VERBATIM_STRING = "verbatim-string"
    RAW_STRING = "raw-string"
    CHAR = "char"
    INTERPOLATED_EXPRESSION = "interpolated-expression"


class SpanKind(str, Enum):
    COMMENT = "comment"
    LITERAL = "literal"


@dataclass(frozen=True)
class LexSpan:
    kind: SpanKind
    start: int
    end: int


@dataclass(frozen=True)
class LexResult:
    """Spans found in one source text."""

    text: str
    spans: tuple[LexSpan, ...]
    error: str | None = None
    masked: str = field(init=False)

    def __post_init__(self) -> None:
        characters = list(self.text)
        for span in self.spans:
            for offset in range(span.start, span.end):
                if characters[offset] not in "\r\n":
                    characters[offset] = " "
        object.__setattr__(self, "masked", "".join(characters))

    def inside_literal(self, offset: int) -> bool:
        """True when `offset` lies strictly inside a literal, past its opening delimiter."""
        return any(
            span.kind is SpanKind.LITERAL and span.start < offset < span.end
            for span in self.spans
        )

    def segments(self) -> list[tuple[SpanKind | None, str]]:
        """Split the text into code (None), comment and literal segments in order."""
        segments: list[tuple[SpanKind | None, str]] = []
        position = 0
        for span in self.spans:
            if span.start > position:
                segments.append((None, self.text[position : span.start]))
            segments.append((span.kind, self.text[span.start : span.end]))
            position = span.end
        if position < len(self.text):
            segments.append((None, self.text[position:]))
        return segments


@dataclass
class _StringFrame:
    state: LexState
    interpolated: bool
    start: int
    dollar_count: int = 0
    quote_count: int = 1
    hole_depth: int = 0


class _CSharpScanner:  # pylint: disable=too-few-public-methods
    """State machine over one C# source text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.position = 0
        self.state = LexState.CODE
        self.frames: list[_StringFrame] = []
        self.spans: list[LexSpan] = []
        self.error: str | None = None
        self._comment_start = 0
        self._comment_return = LexState.CODE

    def scan(self) -> LexResult:
        handlers = {
            LexState.CODE: self._scan_code,
            LexState.INTERPOLATED_EXPRESSION: self._scan_code,
            LexState.LINE_COMMENT: self._scan_line_comment,
            LexState.BLOCK_COMMENT: self._scan_block_comment,
            LexState.STRING: self._scan_string,
            LexState.VERBATIM_STRING: self._scan_verbatim_string,
            LexState.RAW_STRING: self._scan_raw_string,
            LexState.CHAR: self._scan_char,
        }
        while self.position < len(self.text):
            handlers[self.state]()
        self._finish()
        return LexResult(text=self.text, spans=tuple(self.spans), error=self.error)

    def _peek(self, offset: int = 0) -> str:
        index = self.position + offset
        return self.text[index] if index < len(self.text) else ""

    def _at_line_start(self) -> bool:
        line_start = self.text.rfind("\n", 0, self.position) + 1
        return not self.text[line_start : self.position].strip()

    def _scan_code(self) -> None:
        character = self._peek()
        if character == "/" and self._peek(1) == "/":
            self._open_comment(LexState.LINE_COMMENT, 2)
        elif character == "/" and self._peek(1) == "*":
            self._open_comment(LexState.BLOCK_COMMENT, 2)
        elif character == "#" and not self.frames and self._at_line_start():
            self._open_comment(LexState.LINE_COMMENT, 1)
        elif character in "$@\"":
            if not self._open_string():
                self.position += 1
        elif character == "'":
            self._open_frame(_StringFrame(LexState.CHAR, False, self.position))
            self.position += 1
        elif self.state is LexState.INTERPOLATED_EXPRESSION and character == "{":
            self.frames[-1].hole_depth += 1
            self.position += 1
        elif self.state is LexState.INTERPOLATED_EXPRESSION and character == "}":
            frame = self.frames[-1]
            if frame.hole_depth:
                frame.hole_depth -= 1
                self.position += 1
            else:
                raw = frame.state is LexState.RAW_STRING
                self.position += max(frame.dollar_count, 1) if raw else 1
                self.state = frame.state
        else:
            self.position += 1

    def _open_comment(self, state: LexState, width: int) -> None:
        self._comment_start = self.position
        self._comment_return = self.state
        self.state = state
        self.position += width

    def _close_comment(self) -> None:
        if not self.frames:
            self.spans.append(LexSpan(SpanKind.COMMENT, self._comment_start, self.position))
        self.state = self._comment_return

    def _open_string(self) -> bool:
        """Recognise a string prefix at the cursor; returns False for a plain `$` or `@`."""
        index = self.position
        dollars = 0
        verbatim = False
        while index < len(self.text) and self.text[index] in "$@":
            if self.text[index] == "$":
                dollars += 1
            else:
                verbatim = True
            index += 1
        if index >= len(self.text) or self.text[index] != '"':
            return False
        quotes = 0
        while index + quotes < len(self.text) and self.text[index + quotes] == '"':
            quotes += 1

        start = self.position
        if quotes >= 3 and not verbatim:
            frame = _StringFrame(LexState.RAW_STRING, dollars > 0, start, dollars, quotes)
            self.position = index + quotes
        elif verbatim:
            frame = _StringFrame(LexState.VERBATIM_STRING, dollars > 0, start, dollars)
            self.position = index + 1
        else:
            frame = _StringFrame(LexState.STRING, dollars > 0, start, dollars)
            self.position = index + 1
        self._open_frame(frame)
        return True

    def _open_frame(self, frame: _StringFrame) -> None:
        self.frames.append(frame)
        self.state = frame.state

    def _close_frame(self) -> None:
        frame = self.frames.pop()
        if not self.frames:
            self.spans.append(LexSpan(SpanKind.LITERAL, frame.start, self.position))
            self.state = LexState.CODE
        else:
            self.state = LexState.INTERPOLATED_EXPRESSION

    def _enter_hole(self) -> None:
        self.frames[-1].hole_depth = 0
        self.state = LexState.INTERPOLATED_EXPRESSION

    def _scan_line_comment(self) -> None:
        if self._peek() == "\n":
            self._close_comment()
        else:
            self.position += 1

    def _scan_block_comment(self) -> None:
        if self._peek() == "*" and self._peek(1) == "/":
            self.position += 2
            self._close_comment()
        else:
            self.position += 1

    def _scan_string(self) -> None:
        frame = self.frames[-1]
        character = self._peek()
        if character == "\\":
            self.position += 2
        elif character == '"':
            self.position += 1
            self._close_frame()
        elif character == "\n":
            self._fail("Unterminated string literal", frame.start)
        elif frame.interpolated and character == "{":
            if self._peek(1) == "{":
                self.position += 2
            else:
                self.position += 1
                self._enter_hole()
        elif frame.interpolated and character == "}" and self._peek(1) == "}":
            self.position += 2
        else:
            self.position += 1

    def _scan_verbatim_string(self) -> None:
        frame = self.frames[-1]
        character = self._peek()
        if character == '"':
            if self._peek(1) == '"':
                self.position += 2
            else:
                self.position += 1
                self._close_frame()
        elif frame.interpolated and character == "{":
            if self._peek(1) == "{":
                self.position += 2
            else:
                self.position += 1
                self._enter_hole()
        elif frame.interpolated and character == "}" and self._peek(1) == "}":
            self.position += 2
        else:
            self.position += 1

    def _scan_raw_string(self) -> None:
        frame = self.frames[-1]
        character = self._peek()
        if character == '"':
            run = self._run_length('"')
            self.position += run
            if run >= frame.quote_count:
                self._close_frame()
        elif frame.interpolated and character == "{":
            run = self._run_length("{")
            self.position += run
            if run >= frame.dollar_count:
                self._enter_hole()
        else:
            self.position += 1

    def _scan_char(self) -> None:
        frame = self.frames[-1]
        character = self._peek()
        if character == "\\":
            self.position += 2
        elif character == "'":
            self.position += 1
            self._close_frame()
        elif character == "\n":
            self._fail("Unterminated character literal", frame.start)
        else:
            self.position += 1

    def _run_length(self, character: str) -> int:
        length = 0
        while self._peek(length) == character:
            length += 1
        return length

    def _fail(self, message: str, start: int) -> None:
        line = self.text.count("\n", 0, start) + 1
        if self.error is None:
            self.error = f"{message} starting on line {line}"
        self.spans.append(LexSpan(SpanKind.LITERAL, self.frames[0].start, self.position))
        self.frames.clear()
        self.state = LexState.CODE

    def _finish(self) -> None:
        self.position = min(self.position, len(self.text))
        if self.state is LexState.LINE_COMMENT:
            self._close_comment()
        if self.state is LexState.BLOCK_COMMENT:
            line = self.text.count("\n", 0, self._comment_start) + 1
            self.error = self.error or f"Unterminated block comment starting on line {line}"
            self._close_comment()
        if self.frames:
            start = self.frames[0].start
            line = self.text.count("\n", 0, start) + 1
            self.error = self.error or f"Unterminated literal starting on line {line}"
            self.spans.append(LexSpan(SpanKind.LITERAL, start, len(self.text)))
            self.frames.clear()


def lex_csharp(text: str) -> LexResult:
    """Scan C# source for comments and literals."""
    return _CSharpScanner(text).scan()


def lex_razor(text: str) -> LexResult:
    """Scan a Razor view.

    Recognises `@* ... *@` comments and double-quoted strings closed on the
    same line. A quote without a closing partner on its line is plain markup.
    """
    spans = []
    error = None
    position = 0
    length = len(text)
    while position < length:
        if text.startswith("@*", position):
            end = text.find("*@", position + 2)
            if end == -1:
                line = text.count("\n", 0, position) + 1
                error = f"Unterminated Razor comment starting on line {line}"
                spans.append(LexSpan(SpanKind.COMMENT, position, length))
                break
            spans.append(LexSpan(SpanKind.COMMENT, position, end + 2))
            position = end + 2
        elif text[position] == '"':
            line_end = text.find("\n", position)
            line_end = length if line_end == -1 else line_end
            closing = text.find('"', position + 1, line_end)
            if closing == -1:
                position += 1
                continue
            spans.append(LexSpan(SpanKind.LITERAL, position, closing + 1))
            position = closing + 1
        else:
            position += 1
    return LexResult(text=text, spans=tuple(spans), error=error)
