"""
Rust extractor — regex headers plus balanced-brace body detection.

No grammar is involved: comments, strings, char literals and attributes are
blanked out first, then a fixed, ordered set of item patterns is matched
over the masked buffer. Bodies of modules, impls, traits and functions are
scanned recursively so nested items get a scoped path.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from codeviz.models.extraction import FileExtraction, RawEdge, TargetRef
from codeviz.models.graph import DeclarationNode, RustEdgeType, RustNodeType, make_node_id
from codeviz.models.project import Language
from codeviz.services.discovery import RUST_EXCLUDE_DIRS, RUST_EXTENSIONS, SKIP_DIRS

logger = logging.getLogger("graph.rust_parser")

SEP = "::"

_IDENT = r"[A-Za-z_]\w*"

# Ordered by specificity: the earliest match wins, ties go to the earlier entry.
ITEM_PATTERNS = [
    ("macro", re.compile(r"\bmacro_rules!\s*(" + _IDENT + r")")),
    ("impl", re.compile(r"\bimpl\b")),
    ("trait", re.compile(r"\btrait\s+(" + _IDENT + r")")),
    ("enum", re.compile(r"\benum\s+(" + _IDENT + r")")),
    ("struct", re.compile(r"\bstruct\s+(" + _IDENT + r")")),
    ("module", re.compile(r"\bmod\s+(" + _IDENT + r")\s*[;{]")),
    ("function", re.compile(r"\bfn\s+(" + _IDENT + r")")),
    ("constant", re.compile(r"(?<!')\b(?:const|static)\s+(?:mut\s+)?(" + _IDENT + r")\s*:")),
    ("use", re.compile(r"\buse\s+([^;]+);")),
]

_QUALIFIERS = re.compile(
    r"(?:(?:pub(?:\s*\([^)]*\))?|async|const|unsafe|default|extern)\s+)*$"
)
_VISIBILITY = re.compile(r"\bpub\b(?:\s*\(\s*(crate|super|self|in\b[^)]*?)\s*\))?")
_IMPL_HEADER = re.compile(r"^(?:(!)?\s*(.+?)\s+for\s+)?(.+)$", re.DOTALL)
_WHERE = re.compile(r"\bwhere\b")

# `name(` or the turbofish form `name::<T>(`
_CALL = re.compile(r"\b(" + _IDENT + r")\s*(?:::\s*<[^(){};]*>\s*)?\(")
_QUALIFIER_CHAIN = re.compile(r"((?:" + _IDENT + r"\s*::\s*)+)$")

_CHAR_LITERAL = re.compile(r"'(?:\\(?:x[0-9a-fA-F]{2}|u\{[0-9a-fA-F]{1,6}\}|.)|[^\\'\n])'")
_RAW_STRING = re.compile(r'b?r(#*)"')

# Keywords and prelude variant constructors that look like calls
CALL_DENYLIST = {
    "if", "while", "for", "loop", "match", "return", "fn", "let", "in",
    "as", "move", "where", "impl", "mut", "ref", "else", "unsafe", "async",
    "await", "dyn", "break", "continue", "self", "Self", "super", "crate",
    "Some", "Ok", "Err", "None",
}

_PATH_KEYWORDS = {"crate", "self", "super", "Self"}

CALL_TARGET_KINDS = (RustNodeType.function.value, RustNodeType.struct.value)
USE_TARGET_KINDS = (
    RustNodeType.struct.value, RustNodeType.enum_.value, RustNodeType.trait.value,
    RustNodeType.function.value, RustNodeType.module.value,
    RustNodeType.constant.value, RustNodeType.macro.value,
)

_PAIRS = {"(": ")", "[": "]", "{": "}"}


# ─── Text helpers ───────────────────────────────────────

def mask_source(text: str) -> str:
    """Blank comments, string/char literals and attributes, keeping offsets and newlines."""
    out = list(text)
    n = len(text)

    def blank(start: int, end: int) -> None:
        for k in range(start, end):
            if out[k] != "\n":
                out[k] = " "

    i = 0
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""
        if ch == "/" and nxt == "/":
            end = text.find("\n", i)
            end = n if end == -1 else end
            blank(i, end)
            i = end
            continue
        if ch == "/" and nxt == "*":
            depth, j = 1, i + 2
            while j < n and depth:
                if text.startswith("/*", j):
                    depth += 1
                    j += 2
                elif text.startswith("*/", j):
                    depth -= 1
                    j += 2
                else:
                    j += 1
            blank(i, j)
            i = j
            continue
        if ch in "rb" and (i == 0 or not (text[i - 1].isalnum() or text[i - 1] == "_")):
            raw = _RAW_STRING.match(text, i)
            if raw:
                closing = '"' + raw.group(1)
                end = text.find(closing, raw.end())
                end = n if end == -1 else end + len(closing)
                blank(i, end)
                i = end
                continue
        if ch == '"':
            j = i + 1
            while j < n and text[j] != '"':
                j += 2 if text[j] == "\\" else 1
            end = min(j + 1, n)
            blank(i, end)
            i = end
            continue
        if ch == "'":
            lit = _CHAR_LITERAL.match(text, i)
            if lit:
                blank(i, lit.end())
                i = lit.end()
                continue
        if ch == "#" and (nxt == "[" or (nxt == "!" and text[i + 2:i + 3] == "[")):
            open_idx = text.find("[", i)
            close = _match_close(text, open_idx, n)
            end = n if close is None else close + 1
            blank(i, end)
            i = end
            continue
        i += 1
    return "".join(out)


def _match_close(text: str, start: int, limit: int) -> Optional[int]:
    """Index of the bracket closing the one at *start*, or None when unbalanced."""
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


def _scan_to(text: str, start: int, limit: int, stops: str) -> Optional[int]:
    """First char of *stops* outside parens/brackets; brace groups not in *stops* are skipped."""
    depth = 0
    k = start
    while k < limit:
        c = text[k]
        if c in "([":
            depth += 1
        elif c in ")]":
            depth -= 1
            if depth < 0:
                return None
        elif depth == 0 and c in stops:
            return k
        elif c == "{":
            close = _match_close(text, k, limit)
            if close is None:
                return None
            k = close
        k += 1
    return None


def _skip_generics(text: str, k: int, limit: int) -> int:
    while k < limit and text[k].isspace():
        k += 1
    if k >= limit or text[k] != "<":
        return k
    depth = 0
    while k < limit:
        if text.startswith("->", k):
            k += 2
            continue
        c = text[k]
        if c == "<":
            depth += 1
        elif c == ">":
            depth -= 1
            if depth == 0:
                k += 1
                break
        k += 1
    while k < limit and text[k].isspace():
        k += 1
    return k


def _strip_generics(s: str) -> str:
    out = []
    depth = 0
    i = 0
    while i < len(s):
        if s.startswith("->", i):
            if depth == 0:
                out.append("->")
            i += 2
            continue
        c = s[i]
        if c == "<":
            depth += 1
        elif c == ">" and depth:
            depth -= 1
        elif depth == 0:
            out.append(c)
        i += 1
    return "".join(out)


def _base_name(type_text: str) -> Optional[str]:
    """Bare identifier of a type or trait path: ``&'a mut fmt::Display<T>`` -> ``Display``."""
    text = _strip_generics(type_text).split("->")[0]
    text = re.sub(r"\([^()]*\)", "", text)
    tokens = [t for t in re.findall(_IDENT, text) if t not in ("dyn", "mut", "impl")]
    return tokens[-1] if tokens else None


def _qualifier_of(type_text: str) -> Optional[str]:
    parts = [p.strip() for p in _strip_generics(type_text).split(SEP)]
    if len(parts) < 2 or parts[-2] in _PATH_KEYWORDS:
        return None
    return parts[-2] or None


def _path_prefix(type_text: str) -> str:
    """Written path before the last segment: ``std::fmt::Display`` -> ``std::fmt``."""
    parts = [p.strip() for p in _strip_generics(type_text).split(SEP)]
    return SEP.join(parts[:-1])


def _supertraits(header: str) -> List[str]:
    header = _WHERE.split(_strip_generics(header))[0].strip()
    if not header.startswith(":"):
        return []
    names = []
    for bound in header[1:].split("+"):
        bound = bound.strip()
        if not bound or bound.startswith("'") or bound.startswith("?"):
            continue
        name = _base_name(bound)
        if name:
            names.append(name)
    return names


def _split_top_level(text: str) -> List[str]:
    parts, depth, current = [], 0, []
    for c in text:
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
        if c == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(c)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def expand_use_tree(tree: str, prefix: Sequence[str] = ()) -> List[List[str]]:
    """``a::{b, c::{d as e}}`` -> ``[[a, b], [a, c, d]]``."""
    tree = tree.strip()
    if not tree:
        return []
    brace = tree.find("{")
    if brace == -1:
        path = tree.split(" as ")[0]
        return [list(prefix) + [p.strip() for p in path.split(SEP) if p.strip()]]
    head = [p.strip() for p in tree[:brace].split(SEP) if p.strip()]
    inner = tree[brace + 1:tree.rfind("}")]
    results: List[List[str]] = []
    for part in _split_top_level(inner):
        results.extend(expand_use_tree(part, list(prefix) + head))
    return results


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


def _visibility(qualifiers: str) -> str:
    match = _VISIBILITY.search(qualifiers)
    if not match:
        return "private"
    restriction = match.group(1)
    if restriction is None:
        return "public"
    if restriction == "self":
        return "private"
    if restriction.startswith("in"):
        return "in"
    return restriction


def _leading_metadata(text: str, line_start: int) -> Tuple[List[str], List[str]]:
    """Attributes and ``///`` doc lines stacked directly above the line at *line_start*."""
    attributes: List[str] = []
    docs: List[str] = []
    pos = line_start
    while pos > 0:
        prev_start = text.rfind("\n", 0, pos - 1) + 1
        line = text[prev_start:pos - 1].strip()
        if line.startswith("#[") and line.endswith("]"):
            attributes.append(line[2:-1].strip())
        elif line.startswith("///"):
            docs.append(line[3:].strip())
        else:
            break
        pos = prev_start
    attributes.reverse()
    docs.reverse()
    return attributes, docs


# ─── Extractor ──────────────────────────────────────────

@dataclass
class _Context:
    text: str
    masked: str
    file: str
    module_path: str
    mod_decl_scope: str      # where `mod x;` items live
    nodes: List[DeclarationNode] = field(default_factory=list)
    edges: List[RawEdge] = field(default_factory=list)


class RustParser:
    """Lexical extractor for ``.rs`` files."""

    language = Language.rust
    extensions = RUST_EXTENSIONS
    exclude_dirs = SKIP_DIRS | RUST_EXCLUDE_DIRS

    @staticmethod
    def module_path(file_path: Path, repo_root: Path) -> str:
        """``src/net/tcp.rs`` -> ``net::tcp``; ``src/net/mod.rs`` -> ``net``."""
        try:
            rel = file_path.relative_to(repo_root)
        except ValueError:
            rel = Path(file_path.name)
        parts = [p for p in rel.with_suffix("").parts if p != "src"]
        if len(parts) > 1 and parts[-1] == "mod":
            parts = parts[:-1]
        return SEP.join(parts) or file_path.stem

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
        if file_path.stem in ("lib", "main"):
            mod_decl_scope = _parent(module_path)
        else:
            mod_decl_scope = module_path

        ctx = _Context(
            text=text,
            masked=mask_source(text),
            file=str(file_path),
            module_path=module_path,
            mod_decl_scope=mod_decl_scope,
        )
        self._scan_block(ctx, 0, len(text), module_path, None)
        logger.debug(f"{file_path}: {len(ctx.nodes)} nodes, {len(ctx.edges)} raw edges")
        return FileExtraction(file=ctx.file, nodes=ctx.nodes, edges=ctx.edges)

    # ── Block scanning ───────────────────────────────

    def _scan_block(
        self,
        ctx: _Context,
        start: int,
        end: int,
        scope: str,
        container: Optional[DeclarationNode],
    ) -> List[Tuple[int, int]]:
        """Extract items in [start, end); returns the spans they occupy."""
        masked = ctx.masked
        pending = {kind: pattern.search(masked, start, end) for kind, pattern in ITEM_PATTERNS}
        spans: List[Tuple[int, int]] = []
        pos = start

        while True:
            best = None
            for kind, pattern in ITEM_PATTERNS:
                found = pending[kind]
                if found is not None and found.start() < pos:
                    found = pending[kind] = pattern.search(masked, pos, end)
                if found is not None and (best is None or found.start() < best[1].start()):
                    best = (kind, found)
            if best is None:
                break

            kind, match = best
            handler = getattr(self, f"_handle_{kind}")
            span = handler(ctx, match, end, scope, container)
            if span is None:
                pos = match.end()
                continue
            spans.append(span)
            pos = span[1]
        return spans

    def _qualifiers(self, ctx: _Context, idx: int) -> Tuple[int, str]:
        line_start = ctx.masked.rfind("\n", 0, idx) + 1
        prefix = ctx.masked[line_start:idx]
        match = _QUALIFIERS.search(prefix)
        return line_start + match.start(), prefix[match.start():]

    def _add_node(
        self,
        ctx: _Context,
        kind: RustNodeType,
        name: str,
        path: str,
        qual_start: int,
        container: Optional[DeclarationNode],
        signature: Optional[str] = None,
        visibility: Optional[str] = None,
    ) -> DeclarationNode:
        line_start = ctx.text.rfind("\n", 0, qual_start) + 1
        attributes: List[str] = []
        docs: List[str] = []
        # Metadata above a line belongs to the item that opens it
        if not ctx.masked[line_start:qual_start].strip():
            attributes, docs = _leading_metadata(ctx.text, line_start)
        node = DeclarationNode(
            id=make_node_id(kind.value, path, name),
            type=kind.value,
            name=name,
            path=path,
            file=ctx.file,
            signature=signature,
            visibility=visibility,
            attributes=attributes or None,
            description="\n".join(docs) or None,
        )
        ctx.nodes.append(node)
        if container is not None:
            ctx.edges.append(RawEdge(
                kind=RustEdgeType.contains.value,
                file=ctx.file,
                source=container.id,
                target=node.id,
            ))
        return node

    # ── Item handlers ────────────────────────────────

    def _handle_function(self, ctx, match, end, scope, container):
        masked = ctx.masked
        name = match.group(1)
        k = _skip_generics(masked, match.end(), end)
        if k >= end or masked[k] != "(":
            return None
        params_close = _match_close(masked, k, end)
        if params_close is None:
            return None
        stop = _scan_to(masked, params_close + 1, end, "{;")
        if stop is None:
            return None
        body_close = None
        if masked[stop] == "{":
            body_close = _match_close(masked, stop, end)
            if body_close is None:
                return None

        qual_start, qualifiers = self._qualifiers(ctx, match.start())
        node = self._add_node(
            ctx, RustNodeType.function, name, scope, qual_start, container,
            signature=_collapse(ctx.text[qual_start:stop]),
            visibility=_visibility(qualifiers),
        )
        if body_close is None:
            return qual_start, stop + 1

        inner = _join(scope, name)
        children = self._scan_block(ctx, stop + 1, body_close, inner, node)
        self._scan_calls(ctx, node, stop + 1, body_close, children, _ancestor_scopes(inner, ctx.module_path))
        return qual_start, body_close + 1

    def _handle_struct(self, ctx, match, end, scope, container):
        return self._handle_type(ctx, match, end, scope, container, RustNodeType.struct)

    def _handle_enum(self, ctx, match, end, scope, container):
        return self._handle_type(ctx, match, end, scope, container, RustNodeType.enum_)

    def _handle_type(self, ctx, match, end, scope, container, kind):
        masked = ctx.masked
        stop = _scan_to(masked, match.end(), end, "{;")
        if stop is None:
            return None
        item_end = stop + 1
        if masked[stop] == "{":
            close = _match_close(masked, stop, end)
            if close is None:
                return None
            item_end = close + 1

        qual_start, qualifiers = self._qualifiers(ctx, match.start())
        self._add_node(
            ctx, kind, match.group(1), scope, qual_start, container,
            signature=_collapse(ctx.text[qual_start:stop]),
            visibility=_visibility(qualifiers),
        )
        return qual_start, item_end

    def _handle_trait(self, ctx, match, end, scope, container):
        masked = ctx.masked
        stop = _scan_to(masked, match.end(), end, "{;")
        if stop is None or masked[stop] != "{":
            return None
        close = _match_close(masked, stop, end)
        if close is None:
            return None

        name = match.group(1)
        qual_start, qualifiers = self._qualifiers(ctx, match.start())
        node = self._add_node(
            ctx, RustNodeType.trait, name, scope, qual_start, container,
            signature=_collapse(ctx.text[qual_start:stop]),
            visibility=_visibility(qualifiers),
        )
        for parent in _supertraits(masked[match.end():stop]):
            ctx.edges.append(RawEdge(
                kind=RustEdgeType.extends.value,
                file=ctx.file,
                source=node.id,
                target_ref=TargetRef(kinds=(RustNodeType.trait.value,), name=parent, scopes=(scope,)),
            ))
        self._scan_block(ctx, stop + 1, close, _join(scope, name), node)
        return qual_start, close + 1

    def _handle_impl(self, ctx, match, end, scope, container):
        masked = ctx.masked
        k = _skip_generics(masked, match.end(), end)
        stop = _scan_to(masked, k, end, "{;")
        if stop is None or masked[stop] != "{":
            return None
        close = _match_close(masked, stop, end)
        if close is None:
            return None

        header = _WHERE.split(masked[k:stop])[0].strip()
        parsed = _IMPL_HEADER.match(header)
        if parsed is None:
            return None
        negative, trait_text, type_text = parsed.groups()
        type_name = _base_name(type_text)
        if not type_name:
            return None
        trait_name = _base_name(trait_text) if trait_text else None
        name = f"impl {trait_name} for {type_name}" if trait_name else f"impl {type_name}"

        qual_start, _ = self._qualifiers(ctx, match.start())
        node = self._add_node(
            ctx, RustNodeType.impl, name, scope, qual_start, container,
            signature=_collapse(ctx.text[qual_start:stop]),
        )
        if trait_name and not negative:
            ctx.edges.append(RawEdge(
                kind=RustEdgeType.implements.value,
                file=ctx.file,
                source_ref=TargetRef(
                    kinds=(RustNodeType.struct.value, RustNodeType.enum_.value),
                    name=type_name,
                    scopes=(scope,),
                    fallback_scope=scope,
                ),
                target_ref=TargetRef(
                    kinds=(RustNodeType.trait.value,),
                    name=trait_name,
                    scopes=(scope,),
                    qualifier=_qualifier_of(trait_text),
                    fallback_scope=_path_prefix(trait_text),
                ),
            ))
        self._scan_block(ctx, stop + 1, close, _join(scope, type_name), node)
        return qual_start, close + 1

    def _handle_module(self, ctx, match, end, scope, container):
        name = match.group(1)
        terminator = match.end() - 1
        qual_start, qualifiers = self._qualifiers(ctx, match.start())
        visibility = _visibility(qualifiers)

        if ctx.masked[terminator] == ";":
            # `mod x;` names a module backed by another file
            path = ctx.mod_decl_scope if container is None else scope
            self._add_node(ctx, RustNodeType.module, name, path, qual_start, container, visibility=visibility)
            return qual_start, match.end()

        close = _match_close(ctx.masked, terminator, end)
        if close is None:
            return None
        node = self._add_node(ctx, RustNodeType.module, name, scope, qual_start, container, visibility=visibility)
        self._scan_block(ctx, terminator + 1, close, _join(scope, name), node)
        return qual_start, close + 1

    def _handle_constant(self, ctx, match, end, scope, container):
        stop = _scan_to(ctx.masked, match.end(), end, ";")
        if stop is None:
            return None
        qual_start, qualifiers = self._qualifiers(ctx, match.start())
        declaration = ctx.text[qual_start:stop].split("=", 1)[0]
        self._add_node(
            ctx, RustNodeType.constant, match.group(1), scope, qual_start, container,
            signature=_collapse(declaration),
            visibility=_visibility(qualifiers),
        )
        return qual_start, stop + 1

    def _handle_macro(self, ctx, match, end, scope, container):
        masked = ctx.masked
        k = match.end()
        while k < end and masked[k].isspace():
            k += 1
        if k >= end or masked[k] not in _PAIRS:
            return None
        close = _match_close(masked, k, end)
        if close is None:
            return None
        name = match.group(1)
        qual_start, _ = self._qualifiers(ctx, match.start())
        self._add_node(
            ctx, RustNodeType.macro, name, scope, qual_start, container,
            signature=f"macro_rules! {name}",
        )
        item_end = close + 1
        if item_end < end and masked[item_end] == ";":
            item_end += 1
        return qual_start, item_end

    def _handle_use(self, ctx, match, end, scope, container):
        tree = _collapse(ctx.text[match.start(1):match.end(1)])
        qual_start, qualifiers = self._qualifiers(ctx, match.start())
        node = self._add_node(
            ctx, RustNodeType.use, tree, scope, qual_start, container,
            visibility=_visibility(qualifiers),
        )
        for segments in expand_use_tree(tree):
            target = self._use_target(ctx, segments, scope)
            if target is not None:
                ctx.edges.append(RawEdge(
                    kind=RustEdgeType.uses.value,
                    file=ctx.file,
                    source=node.id,
                    target_ref=target,
                ))
        return qual_start, match.end()

    # ── References ───────────────────────────────────

    def _path_scopes(self, ctx: _Context, segments: Sequence[str], current: str) -> Tuple[str, ...]:
        """Candidate scopes for a written path prefix such as ``crate::net`` or ``Self``."""
        if not segments:
            return (current,)
        head, rest = segments[0], SEP.join(segments[1:])
        if head == "crate":
            return (rest,)
        if head == "self":
            return (_join(ctx.module_path, rest),)
        if head == "super":
            return (_join(_parent(ctx.module_path), rest),)
        if head == "Self":
            return (_join(current, rest),)
        joined = SEP.join(segments)
        relative = _join(ctx.module_path, joined)
        return (relative, joined) if relative != joined else (joined,)

    def _use_target(self, ctx: _Context, segments: List[str], scope: str) -> Optional[TargetRef]:
        if not segments or segments[-1] == "*":
            return None
        name, prefix = segments[-1], segments[:-1]
        kinds = USE_TARGET_KINDS
        if name == "self":
            if not prefix:
                return None
            name, prefix = prefix[-1], prefix[:-1]
            kinds = (RustNodeType.module.value,)
        qualifier = prefix[-1] if prefix and prefix[-1] not in _PATH_KEYWORDS else None
        return TargetRef(
            kinds=kinds,
            name=name,
            scopes=self._path_scopes(ctx, prefix, scope) if prefix else (scope, ""),
            qualifier=qualifier,
            fallback_scope=SEP.join(prefix),
        )

    def _scan_calls(self, ctx, node, start, end, children, scopes):
        masked = ctx.masked
        for seg_start, seg_end in _subtract(start, end, children):
            for call in _CALL.finditer(masked, seg_start, seg_end):
                name = call.group(1)
                if name in CALL_DENYLIST or name == node.name:
                    continue
                before = masked[max(seg_start, call.start() - 200):call.start()]
                chain = _QUALIFIER_CHAIN.search(before)
                if chain:
                    segments = [s.strip() for s in chain.group(1).split(SEP) if s.strip()]
                    path_scopes = self._path_scopes(ctx, segments, node.path)
                    qualifier = segments[-1] if segments[-1] not in _PATH_KEYWORDS else None
                    if segments[-1] == "Self" and node.path:
                        qualifier = _last(node.path)
                    target = TargetRef(
                        kinds=CALL_TARGET_KINDS,
                        name=name,
                        scopes=path_scopes,
                        qualifier=qualifier,
                        fallback_scope=SEP.join(segments),
                    )
                else:
                    target = TargetRef(kinds=CALL_TARGET_KINDS, name=name, scopes=scopes)
                ctx.edges.append(RawEdge(
                    kind=RustEdgeType.calls.value,
                    file=ctx.file,
                    source=node.id,
                    target_ref=target,
                ))
