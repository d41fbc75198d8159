"""
Python extractor — line patterns plus indentation-based block detection.

Strings and comments are blanked first (offsets and newlines preserved);
``class``/``def`` headers are then matched line by line and a block ends at
the first later non-blank line indented at or below its header.
"""

import logging
import re
from bisect import bisect_right
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Set, Tuple

from codeviz.models.extraction import FileExtraction, RawEdge, TargetRef
from codeviz.models.graph import DeclarationNode, PythonEdgeType, PythonNodeType, make_node_id
from codeviz.models.project import Language
from codeviz.services.discovery import PYTHON_EXCLUDE_DIRS, PYTHON_EXTENSIONS, SKIP_DIRS

logger = logging.getLogger("graph.python_parser")

SEP = "."

_IDENT = r"[A-Za-z_]\w*"

_DEF = re.compile(r"^([ \t]*)(async[ \t]+)?def[ \t]+(" + _IDENT + r")[ \t]*")
_CLASS = re.compile(r"^([ \t]*)class[ \t]+(" + _IDENT + r")[ \t]*")
_IMPORT_STMT = re.compile(
    r"^[ \t]*(?:from[ \t]+([.\w]+)[ \t]+import[ \t]+(\([^)]*\)|[^\n]*)|import[ \t]+([^\n]*))",
    re.MULTILINE,
)
_ASSIGNMENT = re.compile(r"^(" + _IDENT + r")[ \t]*(?::[^=\n]+)?=(?!=)")
_DOCSTRING = re.compile(r"\s*[rRuU]?(\"\"\"|''')(.*?)\1", re.DOTALL)
_SELF_PARAM = re.compile(r"^(?:self|cls)\b\s*,?\s*")
_DOTTED = re.compile(r"[\w.]+|\*")

_CALL = re.compile(r"\b(" + _IDENT + r")\s*\(")
_RECEIVER = re.compile(r"((?:" + _IDENT + r"\s*\.\s*)+)$")

CALL_DENYLIST = {
    # keywords
    "if", "elif", "while", "for", "return", "def", "class", "with", "as",
    "in", "not", "and", "or", "is", "lambda", "yield", "await", "assert",
    "del", "except", "raise", "import", "from", "global", "nonlocal",
    "print", "super",
    # builtins
    "len", "str", "int", "float", "bool", "list", "dict", "set", "tuple",
    "range", "enumerate", "zip", "map", "filter", "sorted", "reversed",
    "isinstance", "issubclass", "hasattr", "getattr", "setattr", "delattr",
    "type", "open", "min", "max", "sum", "any", "all", "abs", "round",
    "repr", "hash", "id", "iter", "next", "format", "input", "vars", "dir",
    "callable", "frozenset", "bytes", "bytearray", "object",
}

BUILTIN_DECORATORS = {
    "staticmethod", "classmethod", "property", "abstractmethod",
    "abc.abstractmethod", "overload", "typing.overload", "override",
    "typing.override",
}

CALL_TARGET_KINDS = (PythonNodeType.function.value, PythonNodeType.class_.value)
ATTRIBUTE_TARGET_KINDS = (
    PythonNodeType.function.value, PythonNodeType.method.value, PythonNodeType.class_.value,
)
INSTANCE_TARGET_KINDS = (PythonNodeType.method.value, PythonNodeType.function.value)
IMPORT_TARGET_KINDS = (
    PythonNodeType.module.value, PythonNodeType.function.value, PythonNodeType.class_.value,
    PythonNodeType.constant.value, PythonNodeType.variable.value,
)

_PAIRS = {"(": ")", "[": "]", "{": "}"}


# ─── Text helpers ───────────────────────────────────────

def mask_source(text: str) -> str:
    """Blank comments and string literals, keeping offsets and newlines."""
    out = list(text)
    n = len(text)

    def blank(start: int, end: int) -> None:
        for k in range(start, end):
            if out[k] != "\n":
                out[k] = " "

    i = 0
    while i < n:
        ch = text[i]
        if ch == "#":
            end = text.find("\n", i)
            end = n if end == -1 else end
            blank(i, end)
            i = end
            continue
        if ch in "'\"":
            quote = text[i:i + 3]
            if quote in ('"""', "'''"):
                j = i + 3
                end = n
                while j < n:
                    if text[j] == "\\":
                        j += 2
                    elif text.startswith(quote, j):
                        end = j + 3
                        break
                    else:
                        j += 1
            else:
                j = i + 1
                end = n
                while j < n:
                    if text[j] == "\\":
                        j += 2
                    elif text[j] == ch:
                        end = j + 1
                        break
                    elif text[j] == "\n":
                        end = j
                        break
                    else:
                        j += 1
            blank(i, end)
            i = end
            continue
        i += 1
    return "".join(out)


def _match_close(text: str, start: int, limit: int) -> Optional[int]:
    opener = text[start]
    closer = _PAIRS[opener]
    depth = 0
    for k in range(start, limit):
        c = text[k]
        if c == opener:
            depth += 1
        elif c == closer:
            depth -= 1
            if depth == 0:
                return k
    return None


def _find_colon(text: str, start: int) -> Optional[int]:
    """The header-ending colon: first ``:`` outside brackets before a bare newline."""
    depth = 0
    for k in range(start, len(text)):
        c = text[k]
        if c in "([{":
            depth += 1
        elif c in ")]}":
            depth -= 1
        elif depth == 0 and c == ":":
            return k
        elif depth == 0 and c == "\n" and text[k - 1] != "\\":
            return None
    return None


def _split_top_level(text: str) -> List[str]:
    parts, depth, current = [], 0, []
    for c in text:
        if c in "([{":
            depth += 1
        elif c in ")]}":
            depth -= 1
        if c == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(c)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def _split_names(text: str) -> List[str]:
    """Names of an import list, aliases dropped: ``(a as b,\\n c)`` -> ``[a, c]``."""
    text = text.split(";")[0].strip().strip("()").replace("\\", " ")
    names = []
    for item in text.split(","):
        item = item.strip().split(" as ")[0].strip()
        if item and _DOTTED.fullmatch(item):
            names.append(item)
    return names


def _import_bindings(masked: str) -> Set[str]:
    """Names an import statement binds: ``import a.b`` -> ``a``, ``from x import y as z`` -> ``z``."""
    bound: Set[str] = set()
    for match in _IMPORT_STMT.finditer(masked):
        _, names, plain = match.groups()
        text = plain if plain is not None else names
        for item in text.split(";")[0].strip().strip("()").replace("\\", " ").split(","):
            parts = [p.strip() for p in item.split(" as ")]
            if len(parts) == 2 and parts[1]:
                bound.add(parts[1])
            elif parts[0] and parts[0] != "*":
                bound.add(parts[0].split(SEP)[0] if plain is not None else parts[0])
    return bound


def _indent(line: str) -> int:
    expanded = line.expandtabs(8)
    return len(expanded) - len(expanded.lstrip())


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _join(scope: str, name: str) -> str:
    if not scope:
        return name
    if not name:
        return scope
    return f"{scope}{SEP}{name}"


def _parent(path: str) -> str:
    return path.rsplit(SEP, 1)[0] if SEP in path else ""


def _last(path: str) -> str:
    return path.rsplit(SEP, 1)[-1]


def _ancestor_scopes(scope: str, stop_at: str) -> Tuple[str, ...]:
    scopes = [scope]
    while SEP in scope and scope != stop_at:
        scope = _parent(scope)
        scopes.append(scope)
    return tuple(scopes)


def _subtract(start: int, end: int, spans: Sequence[Tuple[int, int]]) -> List[Tuple[int, int]]:
    segments = []
    pos = start
    for s, e in sorted(spans):
        if s > pos:
            segments.append((pos, min(s, end)))
        pos = max(pos, e)
    if pos < end:
        segments.append((pos, end))
    return segments


# ─── Extractor ──────────────────────────────────────────

@dataclass
class _Header:
    name: str
    line: int                 # line of the `def` / `class` keyword
    args: Optional[str]       # raw text between the parens
    args_start: Optional[int]
    returns: Optional[str]
    colon: int                # offset of the terminating colon
    end_line: int


@dataclass
class _Context:
    text: str
    masked: str
    lines: List[str]
    mlines: List[str]
    offsets: List[int]        # offsets[i] = first char of line i
    file: str
    module_path: str
    bindings: Set[str] = field(default_factory=set)   # local names bound by imports
    nodes: List[DeclarationNode] = field(default_factory=list)
    edges: List[RawEdge] = field(default_factory=list)

    def line_of(self, pos: int) -> int:
        return bisect_right(self.offsets, pos) - 1

    def char_of(self, line: int) -> int:
        return min(self.offsets[line], len(self.text))


class PythonParser:
    """Lexical extractor for ``.py`` files."""

    language = Language.python
    extensions = PYTHON_EXTENSIONS
    exclude_dirs = SKIP_DIRS | PYTHON_EXCLUDE_DIRS

    @staticmethod
    def module_path(file_path: Path, repo_root: Path) -> str:
        """``pkg/util.py`` -> ``pkg.util``; ``pkg/__init__.py`` -> ``pkg``."""
        try:
            rel = file_path.relative_to(repo_root)
        except ValueError:
            rel = Path(file_path.name)
        parts = list(rel.with_suffix("").parts)
        if len(parts) > 1 and parts[-1] == "__init__":
            parts = parts[:-1]
        return SEP.join(parts)

    def parse_file(self, file_path: Path, repo_root: Path) -> FileExtraction:
        """Read and scan one file. Never raises: failures yield an empty result."""
        try:
            text = file_path.read_text(encoding="utf-8", errors="replace")
        except (OSError, IOError) as e:
            logger.warning(f"Cannot read {file_path}: {e}")
            return FileExtraction(file=str(file_path))

        try:
            return self.extract_file(file_path, text, repo_root)
        except Exception as e:
            logger.error(f"Failed to scan {file_path}: {e}")
            return FileExtraction(file=str(file_path))

    def extract_file(self, file_path: Path, text: str, repo_root: Path) -> FileExtraction:
        file_path = Path(file_path)
        module_path = self.module_path(file_path, Path(repo_root))
        masked = mask_source(text)
        lines = text.split("\n")
        offsets = [0]
        for line in lines:
            offsets.append(offsets[-1] + len(line) + 1)

        ctx = _Context(
            text=text,
            masked=masked,
            lines=lines,
            mlines=masked.split("\n"),
            offsets=offsets,
            file=str(file_path),
            module_path=module_path,
            bindings=_import_bindings(masked),
        )

        doc = _DOCSTRING.match(text)
        module_node = DeclarationNode(
            id=make_node_id(PythonNodeType.module.value, _parent(module_path), _last(module_path)),
            type=PythonNodeType.module.value,
            name=_last(module_path),
            path=_parent(module_path),
            file=ctx.file,
            docstring=doc.group(2).strip() if doc else None,
        )
        ctx.nodes.append(module_node)

        spans = self._scan_block(ctx, 0, len(lines), module_path, module_node, None)
        self._scan_assignments(ctx, module_node, spans)
        self._scan_imports(ctx, module_node, file_path.stem == "__init__")
        self._scan_calls(
            ctx, module_node, 0, len(text),
            [(ctx.char_of(a), ctx.char_of(b)) for a, b in spans],
            (module_path,), None,
        )
        logger.debug(f"{file_path}: {len(ctx.nodes)} nodes, {len(ctx.edges)} raw edges")
        return FileExtraction(file=ctx.file, nodes=ctx.nodes, edges=ctx.edges)

    # ── Block scanning ───────────────────────────────

    def _scan_block(
        self,
        ctx: _Context,
        start: int,
        end: int,
        scope: str,
        container: DeclarationNode,
        class_scope: Optional[str],
    ) -> List[Tuple[int, int]]:
        """Extract class/def blocks on lines [start, end); returns their line spans."""
        spans: List[Tuple[int, int]] = []
        i = start
        while i < end:
            mline = ctx.mlines[i]
            class_match = _CLASS.match(mline)
            def_match = None if class_match else _DEF.match(mline)
            match = class_match or def_match
            if match is None:
                i += 1
                continue

            header = self._read_header(ctx, i, match, is_def=def_match is not None)
            if header is None:
                i += 1
                continue

            body_end = self._block_end(ctx, header.end_line + 1, end, _indent(match.group(1)))
            first, decorators = self._decorators(ctx, i, start)
            if class_match:
                self._add_class(ctx, header, body_end, first, decorators, scope, container)
            else:
                is_async = def_match.group(2) is not None
                self._add_function(ctx, header, body_end, first, decorators, is_async, scope, container, class_scope)
            spans.append((first, body_end))
            i = body_end
        return spans

    def _read_header(self, ctx: _Context, line: int, match: re.Match, is_def: bool) -> Optional[_Header]:
        masked = ctx.masked
        pos = ctx.offsets[line] + match.end()
        if pos < len(masked) and masked[pos] == "[":
            # PEP 695 type parameters
            close = _match_close(masked, pos, len(masked))
            if close is None:
                return None
            pos = close + 1
        while pos < len(masked) and masked[pos] in " \t":
            pos += 1

        args = None
        args_start = None
        if pos < len(masked) and masked[pos] == "(":
            args_start = pos + 1
            close = _match_close(masked, pos, len(masked))
            if close is None:
                return None
            args = ctx.text[pos + 1:close]
            pos = close + 1
        elif is_def:
            return None

        colon = _find_colon(masked, pos)
        if colon is None:
            return None
        returns = None
        annotation = masked[pos:colon].strip()
        if is_def and annotation.startswith("->"):
            returns = _collapse(ctx.text[pos:colon].strip()[2:])

        return _Header(
            name=match.group(match.lastindex),
            line=line,
            args=args,
            args_start=args_start,
            returns=returns or None,
            colon=colon,
            end_line=ctx.line_of(colon),
        )

    def _block_end(self, ctx: _Context, start: int, limit: int, indent: int) -> int:
        for j in range(start, limit):
            mline = ctx.mlines[j]
            if not mline.strip():
                continue
            if _indent(mline) <= indent:
                return j
        return limit

    def _decorators(self, ctx: _Context, line: int, floor: int) -> Tuple[int, List[str]]:
        decorators: List[str] = []
        first = line
        j = line - 1
        while j >= floor:
            if not ctx.mlines[j].strip():
                j -= 1
                continue
            stripped = ctx.lines[j].strip()
            if not stripped.startswith("@"):
                break
            decorators.append(stripped[1:].strip())
            first = j
            j -= 1
        decorators.reverse()
        return first, decorators

    def _docstring(self, ctx: _Context, colon: int, body_end: int) -> Optional[str]:
        doc = _DOCSTRING.match(ctx.text, colon + 1, ctx.char_of(body_end))
        return doc.group(2).strip() if doc else None

    def _contains(self, ctx: _Context, container: DeclarationNode, node: DeclarationNode) -> None:
        ctx.edges.append(RawEdge(
            kind=PythonEdgeType.contains.value,
            file=ctx.file,
            source=container.id,
            target=node.id,
        ))

    def _add_class(self, ctx, header, body_end, first, decorators, scope, container):
        bases = _split_top_level(header.args or "")
        signature = f"class {header.name}({', '.join(bases)})" if bases else f"class {header.name}"
        node = DeclarationNode(
            id=make_node_id(PythonNodeType.class_.value, scope, header.name),
            type=PythonNodeType.class_.value,
            name=header.name,
            path=scope,
            file=ctx.file,
            signature=_collapse(signature),
            docstring=self._docstring(ctx, header.colon, body_end),
            decorators=decorators or None,
        )
        ctx.nodes.append(node)
        self._contains(ctx, container, node)
        self._decorator_edges(ctx, node, decorators)

        for base in bases:
            if "=" in base or base.startswith("*"):
                continue
            dotted = _collapse(base.split("[")[0])
            if not dotted or dotted == "object":
                continue
            prefix = _parent(dotted)
            ctx.edges.append(RawEdge(
                kind=PythonEdgeType.inherits.value,
                file=ctx.file,
                source=node.id,
                target_ref=TargetRef(
                    kinds=(PythonNodeType.class_.value,),
                    name=_last(dotted),
                    scopes=() if prefix else tuple(dict.fromkeys((scope, ctx.module_path))),
                    qualifier=_last(prefix) if prefix else None,
                    fallback_scope=prefix,
                ),
            ))

        inner = _join(scope, header.name)
        children = self._scan_block(ctx, header.end_line + 1, body_end, inner, node, inner)
        self._scan_own_calls(ctx, node, header, first, body_end, children, inner, inner)

    def _add_function(self, ctx, header, body_end, first, decorators, is_async, scope, container, class_scope):
        is_method = container.type == PythonNodeType.class_.value
        kind = PythonNodeType.method if is_method else PythonNodeType.function
        params = _collapse(header.args or "")
        if is_method:
            params = _SELF_PARAM.sub("", params, count=1)
        signature = f"{'async def' if is_async else 'def'} {header.name}({params})"
        if header.returns:
            signature += f" -> {header.returns}"

        node = DeclarationNode(
            id=make_node_id(kind.value, scope, header.name),
            type=kind.value,
            name=header.name,
            path=scope,
            file=ctx.file,
            signature=signature,
            docstring=self._docstring(ctx, header.colon, body_end),
            decorators=decorators or None,
        )
        ctx.nodes.append(node)
        self._contains(ctx, container, node)
        self._decorator_edges(ctx, node, decorators)

        # `self.` inside nested functions still refers to the enclosing class
        if is_method:
            class_scope = scope
        inner = _join(scope, header.name)
        children = self._scan_block(ctx, header.end_line + 1, body_end, inner, node, class_scope)
        self._scan_own_calls(ctx, node, header, first, body_end, children, inner, class_scope)

    def _decorator_edges(self, ctx: _Context, node: DeclarationNode, decorators: List[str]) -> None:
        for decorator in decorators:
            dotted = _collapse(decorator.split("(")[0])
            name = _last(dotted)
            if not name or dotted in BUILTIN_DECORATORS or name in ("setter", "getter", "deleter"):
                continue
            prefix = _parent(dotted)
            ctx.edges.append(RawEdge(
                kind=PythonEdgeType.uses.value,
                file=ctx.file,
                source=node.id,
                target_ref=TargetRef(
                    kinds=CALL_TARGET_KINDS,
                    name=name,
                    scopes=() if prefix else (ctx.module_path,),
                    qualifier=_last(prefix) if prefix else None,
                    fallback_scope=prefix,
                ),
            ))

    # ── Module level ─────────────────────────────────

    def _scan_assignments(self, ctx: _Context, module_node: DeclarationNode, spans) -> None:
        owned = [True] * len(ctx.mlines)
        for a, b in spans:
            for j in range(a, b):
                owned[j] = False

        for i, mline in enumerate(ctx.mlines):
            if not owned[i]:
                continue
            match = _ASSIGNMENT.match(mline)
            if not match:
                continue
            name = match.group(1)
            kind = PythonNodeType.constant if name.isupper() else PythonNodeType.variable
            node = DeclarationNode(
                id=make_node_id(kind.value, ctx.module_path, name),
                type=kind.value,
                name=name,
                path=ctx.module_path,
                file=ctx.file,
                signature=_collapse(ctx.lines[i].split("=", 1)[0]),
            )
            ctx.nodes.append(node)
            self._contains(ctx, module_node, node)

    def _scan_imports(self, ctx: _Context, module_node: DeclarationNode, is_package: bool) -> None:
        package = ctx.module_path if is_package else _parent(ctx.module_path)
        for match in _IMPORT_STMT.finditer(ctx.masked):
            source, names, plain = match.groups()
            if plain is not None:
                for dotted in _split_names(plain):
                    self._add_import(ctx, module_node, dotted, TargetRef(
                        kinds=(PythonNodeType.module.value,),
                        name=_last(dotted),
                        scopes=(_parent(dotted),),
                        fallback_scope=_parent(dotted),
                    ))
                continue

            base = self._absolute_module(source, package)
            for name in _split_names(names):
                if name == "*":
                    self._add_import(ctx, module_node, base, TargetRef(
                        kinds=(PythonNodeType.module.value,),
                        name=_last(base),
                        scopes=(_parent(base),),
                        fallback_scope=_parent(base),
                    ))
                    continue
                self._add_import(ctx, module_node, _join(base, name), TargetRef(
                    kinds=IMPORT_TARGET_KINDS,
                    name=name,
                    scopes=(base,),
                    qualifier=_last(base) or None,
                    fallback_scope=base,
                ))

    @staticmethod
    def _absolute_module(source: str, package: str) -> str:
        """Resolve ``..pkg.mod`` against the importing module's package."""
        dots = len(source) - len(source.lstrip("."))
        rest = source[dots:]
        if dots == 0:
            return rest
        base = package
        for _ in range(dots - 1):
            base = _parent(base)
        return _join(base, rest)

    def _add_import(self, ctx: _Context, module_node: DeclarationNode, label: str, target: TargetRef) -> None:
        node = DeclarationNode(
            id=make_node_id(PythonNodeType.import_.value, ctx.module_path, label),
            type=PythonNodeType.import_.value,
            name=label,
            path=ctx.module_path,
            file=ctx.file,
        )
        ctx.nodes.append(node)
        ctx.edges.append(RawEdge(
            kind=PythonEdgeType.imports.value,
            file=ctx.file,
            source=module_node.id,
            target_ref=target,
        ))

    # ── Calls ────────────────────────────────────────

    def _scan_own_calls(self, ctx, node, header, first, body_end, children, inner, class_scope):
        """Calls in decorator arguments, parameter defaults and the body of one declaration."""
        scopes = _ancestor_scopes(inner, ctx.module_path)
        for j in range(first, header.line):
            mline = ctx.mlines[j]
            paren = mline.find("(")
            if paren >= 0 and mline.lstrip().startswith("@"):
                line_start = ctx.offsets[j]
                self._scan_calls(ctx, node, line_start + paren + 1, line_start + len(mline), [], scopes, class_scope)

        start = header.args_start if header.args_start is not None else header.colon + 1
        self._scan_calls(
            ctx, node, start, ctx.char_of(body_end),
            [(ctx.char_of(a), ctx.char_of(b)) for a, b in children],
            scopes, class_scope,
        )

    def _scan_calls(self, ctx, node, start, end, children, scopes, class_scope):
        masked = ctx.masked
        for seg_start, seg_end in _subtract(start, end, children):
            for call in _CALL.finditer(masked, seg_start, seg_end):
                name = call.group(1)
                if name in CALL_DENYLIST or name == node.name:
                    continue
                before = masked[max(seg_start, call.start() - 200):call.start()]
                chain = _RECEIVER.search(before)
                if chain:
                    receiver = [p.strip() for p in chain.group(1).split(SEP) if p.strip()]
                    if len(receiver) == 1 and receiver[0] in ("self", "cls") and class_scope:
                        target = TargetRef(
                            kinds=(PythonNodeType.method.value,),
                            name=name,
                            scopes=(class_scope,),
                            fallback_scope=class_scope,
                        )
                    elif receiver[0] in ctx.bindings:
                        # module attribute, e.g. `helpers.slugify()`
                        target = TargetRef(
                            kinds=ATTRIBUTE_TARGET_KINDS,
                            name=name,
                            qualifier=receiver[-1],
                            fallback_scope=SEP.join(receiver),
                        )
                    else:
                        target = TargetRef(kinds=INSTANCE_TARGET_KINDS, name=name)
                elif before.rstrip().endswith("."):
                    # receiver is an expression, e.g. `make().run()`
                    target = TargetRef(kinds=INSTANCE_TARGET_KINDS, name=name)
                else:
                    target = TargetRef(kinds=CALL_TARGET_KINDS, name=name, scopes=scopes)
                ctx.edges.append(RawEdge(
                    kind=PythonEdgeType.calls.value,
                    file=ctx.file,
                    source=node.id,
                    target_ref=target,
                ))
