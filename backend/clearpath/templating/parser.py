"""Tokenizer and parser for the document template mini-language.

Grammar::

    variable    ::= "{{" ws* path ws* "}}"
    conditional ::= "{{#if" ws+ path ws+ operator ws+ literal "}}" body ["{{else}}" body] "{{/if}}"
    operator    ::= "===" | "==" | "!==" | "!="
    path        ::= identifier ("." identifier)*
    literal     ::= "'" text "'" | '"' text '"' | "true" | "false"

Parsing never fails. Unterminated ``{{``, stray ``{{else}}``/``{{/if}}`` and
unclosed ``{{#if`` tags are kept as literal text.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

OPEN = "{{"
CLOSE = "}}"

PATH_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*")
OPERATOR_RE = re.compile(r"\s+(===|!==|==|!=)\s+")
IF_RE = re.compile(r"#if(?:\s+(.*))?", re.DOTALL)

Literal = Union[str, bool]


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Variable:
    path: str
    raw: str


@dataclass(frozen=True)
class Condition:
    path: str
    operator: str
    literal: Literal


@dataclass(frozen=True)
class Conditional:
    condition: Optional[Condition]
    source: str
    body: Tuple["Node", ...]
    orelse: Tuple["Node", ...] = ()


Node = Union[Text, Variable, Conditional]


@dataclass(frozen=True)
class _Token:
    kind: str  # text | var | if | else | endif
    raw: str
    value: str = ""


def tokenize(source: str) -> List[_Token]:
    tokens: List[_Token] = []
    position = 0
    while position < len(source):
        start = source.find(OPEN, position)
        if start == -1:
            tokens.append(_Token("text", source[position:]))
            break
        end = source.find(CLOSE, start + len(OPEN))
        if end == -1:
            tokens.append(_Token("text", source[position:]))
            break
        if start > position:
            tokens.append(_Token("text", source[position:start]))

        raw = source[start:end + len(CLOSE)]
        inner = source[start + len(OPEN):end]
        stripped = inner.strip()
        if_match = IF_RE.fullmatch(inner)
        if if_match:
            tokens.append(_Token("if", raw, (if_match.group(1) or "").strip()))
        elif stripped == "else":
            tokens.append(_Token("else", raw))
        elif stripped == "/if":
            tokens.append(_Token("endif", raw))
        else:
            tokens.append(_Token("var", raw, stripped))
        position = end + len(CLOSE)
    return tokens


def parse_condition(text: str) -> Optional[Condition]:
    """Split on the first operator; None when the condition is malformed."""
    match = OPERATOR_RE.search(text)
    if match is None:
        return None
    path = text[:match.start()].strip()
    raw_literal = text[match.end():].strip()
    if not PATH_RE.fullmatch(path):
        return None

    literal: Optional[Literal] = None
    if len(raw_literal) >= 2 and raw_literal[0] == raw_literal[-1] and raw_literal[0] in "'\"":
        literal = raw_literal[1:-1]
    elif raw_literal in ("true", "false"):
        literal = raw_literal == "true"
    if literal is None:
        return None
    if literal in ("true", "false"):
        literal = literal == "true"
    return Condition(path=path, operator=match.group(1), literal=literal)


@dataclass
class _Frame:
    token: _Token
    body: List[Node] = field(default_factory=list)
    orelse: List[Node] = field(default_factory=list)
    else_token: Optional[_Token] = None

    @property
    def target(self) -> List[Node]:
        return self.orelse if self.else_token is not None else self.body


def parse(source: str) -> Tuple[Node, ...]:
    """Parse template source into a tuple of AST nodes."""
    root: List[Node] = []
    stack: List[_Frame] = []

    def target() -> List[Node]:
        return stack[-1].target if stack else root

    for token in tokenize(source):
        if token.kind == "text":
            target().append(Text(token.raw))
        elif token.kind == "var":
            target().append(Variable(path=token.value, raw=token.raw))
        elif token.kind == "if":
            stack.append(_Frame(token))
        elif token.kind == "else":
            if stack and stack[-1].else_token is None:
                stack[-1].else_token = token
            else:
                target().append(Text(token.raw))
        elif token.kind == "endif":
            if not stack:
                root.append(Text(token.raw))
                continue
            frame = stack.pop()
            target().append(
                Conditional(
                    condition=parse_condition(frame.token.value),
                    source=frame.token.value,
                    body=tuple(frame.body),
                    orelse=tuple(frame.orelse),
                )
            )

    # Unclosed blocks: keep the opening tag verbatim and inline the contents.
    while stack:
        frame = stack.pop()
        spilled: List[Node] = [Text(frame.token.raw), *frame.body]
        if frame.else_token is not None:
            spilled.extend([Text(frame.else_token.raw), *frame.orelse])
        target().extend(spilled)

    return tuple(root)


def is_balanced(source: str) -> bool:
    """True when every ``{{#if}}`` has a matching ``{{/if}}``."""
    depth = 0
    for token in tokenize(source):
        if token.kind == "if":
            depth += 1
        elif token.kind == "endif":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0
