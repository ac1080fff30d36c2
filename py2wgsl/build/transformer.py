"""
Build-time rewriting of shader call sites.

Marker call sites are ``<expr>.does(impl)`` and ``<gpu alias>.procedure(impl)``.
When ``impl`` is a lambda, or the marker decorates a function definition, the
closure is analyzed right away and the call site is rewritten to attach the
serialized CompiledUnit plus a thunk capturing the externals visible there:

    add = gpu.fn([f32, f32], f32).does(lambda a, b: a + b - c)

becomes

    add = gpu.fn([f32, f32], f32).does(
        _py2wgsl_gpu._assign_ast(lambda a, b: a + b - c, '{...}', lambda: {'c': c})
    )

String implementations (raw WGSL) pass through untouched; any other argument
is left to the runtime path.
"""

import ast

from loguru import logger

from py2wgsl.build.aliases import AliasContext
from py2wgsl.build.options import BuildOptions
from py2wgsl.transpiler.analyzer import ScopeAnalyzer
from py2wgsl.transpiler.errors import TranspilerError
from py2wgsl.transpiler.models import CompiledUnit

MARKER_METHOD = "does"
ROOT_MARKER_METHOD = "procedure"
RUNTIME_MODULE = "py2wgsl.gpu"
RUNTIME_ALIAS = "_py2wgsl_gpu"

ScopeNode = ast.Module | ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda


class _BindingCollector(ast.NodeVisitor):
    """Collects the names bound directly in one scope.

    Nested function, lambda, class and comprehension bodies are separate
    scopes and are not entered.
    """

    def __init__(self) -> None:
        self.names: set[str] = set()

    def visit_Name(self, node: ast.Name) -> None:  # noqa: N802
        if isinstance(node.ctx, ast.Store):
            self.names.add(node.id)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:  # noqa: N802
        self.names.add(node.name)
        for decorator in node.decorator_list:
            self.visit(decorator)
        for default in [*node.args.defaults, *node.args.kw_defaults]:
            if default is not None:
                self.visit(default)

    visit_AsyncFunctionDef = visit_FunctionDef  # noqa: N815

    def visit_ClassDef(self, node: ast.ClassDef) -> None:  # noqa: N802
        self.names.add(node.name)
        for expr in [*node.decorator_list, *node.bases]:
            self.visit(expr)

    def visit_Lambda(self, node: ast.Lambda) -> None:  # noqa: N802
        for default in [*node.args.defaults, *node.args.kw_defaults]:
            if default is not None:
                self.visit(default)

    def _skip(self, node: ast.AST) -> None:
        pass

    visit_ListComp = visit_SetComp = visit_DictComp = _skip  # noqa: N815
    visit_GeneratorExp = _skip  # noqa: N815

    def visit_Import(self, node: ast.Import) -> None:  # noqa: N802
        for alias in node.names:
            self.names.add(alias.asname or alias.name.split(".")[0])

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:  # noqa: N802
        for alias in node.names:
            if alias.name != "*":
                self.names.add(alias.asname or alias.name)

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:  # noqa: N802
        if node.name:
            self.names.add(node.name)
        self.generic_visit(node)


def bound_names(scope: ScopeNode) -> set[str]:
    """Names bound directly in a module, function or lambda scope."""
    collector = _BindingCollector()
    names: set[str] = set()
    if isinstance(scope, ast.Module):
        body: list[ast.AST] = list(scope.body)
    else:
        args = scope.args
        params = [*args.posonlyargs, *args.args, *args.kwonlyargs]
        params += [a for a in (args.vararg, args.kwarg) if a is not None]
        names.update(a.arg for a in params)
        body = [scope.body] if isinstance(scope, ast.Lambda) else list(scope.body)
    for node in body:
        collector.visit(node)
    return names | collector.names


def _empty_arguments() -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=[],
        vararg=None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=[],
    )


def _runtime_attr(name: str) -> ast.Attribute:
    return ast.Attribute(
        value=ast.Name(id=RUNTIME_ALIAS, ctx=ast.Load()), attr=name, ctx=ast.Load()
    )


class ShaderCallTransformer(ast.NodeTransformer):
    """Rewrites marker call sites of one module.

    Attributes:
        aliases: Names the gpu namespace is reachable through
        rewritten: Number of call sites rewritten so far
    """

    def __init__(self, source: str | None = None):
        self.source = source
        self.aliases = AliasContext()
        self.rewritten = 0
        self._scopes: list[set[str]] = []

    def _is_marker(self, func: ast.expr) -> bool:
        if not isinstance(func, ast.Attribute):
            return False
        if func.attr == MARKER_METHOD:
            return True
        return func.attr == ROOT_MARKER_METHOD and self.aliases.is_root(func.value)

    def _visible(self, name: str) -> bool:
        return any(name in scope for scope in self._scopes)

    def _externals_thunk(self, unit: CompiledUnit) -> ast.expr:
        names = [name for name in unit.external_names if self._visible(name)]
        if not names:
            return ast.Constant(value=None)
        return ast.Lambda(
            args=_empty_arguments(),
            body=ast.Dict(
                keys=[ast.Constant(value=name) for name in names],
                values=[ast.Name(id=name, ctx=ast.Load()) for name in names],
            ),
        )

    def _compile(self, closure: ast.Lambda | ast.FunctionDef) -> CompiledUnit:
        unit = ScopeAnalyzer(self.source).analyze(closure)
        self.rewritten += 1
        logger.debug(
            f"Compiled shader closure at line {closure.lineno}, "
            f"externals {list(unit.external_names)}"
        )
        return unit

    def _with_scope(self, scope: ScopeNode, node: ast.AST) -> ast.AST:
        self._scopes.append(bound_names(scope))
        try:
            return self.generic_visit(node)
        finally:
            self._scopes.pop()

    def visit_Module(self, node: ast.Module) -> ast.AST:  # noqa: N802
        return self._with_scope(node, node)

    def visit_Import(self, node: ast.Import) -> ast.AST:  # noqa: N802
        self.aliases.register(node)
        return node

    def visit_ImportFrom(self, node: ast.ImportFrom) -> ast.AST:  # noqa: N802
        self.aliases.register(node)
        return node

    def visit_FunctionDef(self, node: ast.FunctionDef) -> ast.AST:  # noqa: N802
        for index, decorator in enumerate(node.decorator_list):
            if self._is_marker(decorator):
                unit = self._compile(node)
                assign = ast.Call(
                    func=_runtime_attr("_assign_ast_to"),
                    args=[
                        ast.Constant(value=unit.to_json()),
                        self._externals_thunk(unit),
                    ],
                    keywords=[],
                )
                node.decorator_list.insert(index + 1, ast.copy_location(assign, node))
                break
        return self._with_scope(node, node)

    def visit_AsyncFunctionDef(  # noqa: N802
        self, node: ast.AsyncFunctionDef
    ) -> ast.AST:
        return self._with_scope(node, node)

    def visit_Lambda(self, node: ast.Lambda) -> ast.AST:  # noqa: N802
        return self._with_scope(node, node)

    def visit_Call(self, node: ast.Call) -> ast.AST:  # noqa: N802
        single_arg = len(node.args) == 1 and not node.keywords
        if not (single_arg and self._is_marker(node.func)):
            return self.generic_visit(node)

        implementation = node.args[0]
        if not isinstance(implementation, ast.Lambda):
            # Raw WGSL strings and runtime values are left alone
            return self.generic_visit(node)

        unit = self._compile(implementation)
        node.func = self.visit(node.func)
        assign = ast.Call(
            func=_runtime_attr("_assign_ast"),
            args=[
                implementation,
                ast.Constant(value=unit.to_json()),
                self._externals_thunk(unit),
            ],
            keywords=[],
        )
        node.args = [ast.copy_location(assign, implementation)]
        return node


def _insert_runtime_import(tree: ast.Module) -> None:
    index = 0
    body = tree.body
    first = body[0] if body else None
    if isinstance(first, ast.Expr) and isinstance(first.value, ast.Constant):
        if isinstance(first.value.value, str):
            index = 1
    while (
        index < len(body)
        and isinstance(body[index], ast.ImportFrom)
        and body[index].module == "__future__"
    ):
        index += 1
    statement = ast.Import(names=[ast.alias(name=RUNTIME_MODULE, asname=RUNTIME_ALIAS)])
    body.insert(index, statement)


def transform_tree(
    tree: ast.Module, source: str | None = None, path: str = "<string>"
) -> tuple[ast.Module, int]:
    """Rewrite the marker call sites of a parsed module in place.

    Args:
        tree: Parsed module
        source: Text the tree was parsed from, keeps numeric literals as written
        path: Module path, used in error messages

    Returns:
        The tree and the number of rewritten call sites

    Raises:
        TranspilerError: If a shader closure cannot be analyzed
    """
    transformer = ShaderCallTransformer(source)
    try:
        tree = transformer.visit(tree)
    except TranspilerError as e:
        logger.error(f"Failed to compile shader closure in {path}: {e}")
        raise
    if transformer.rewritten:
        _insert_runtime_import(tree)
        logger.info(f"Rewrote {transformer.rewritten} shader call site(s) in {path}")
    ast.fix_missing_locations(tree)
    return tree, transformer.rewritten


def transform_source(
    source: str, path: str = "<string>", options: BuildOptions | None = None
) -> str:
    """Rewrite the marker call sites of a module's source text.

    Modules not selected by ``options`` and modules without any call site are
    returned unchanged.

    Args:
        source: Module source text
        path: Module path, matched against the include patterns
        options: Build options, defaults to scanning modules importing py2wgsl

    Returns:
        The rewritten source text
    """
    options = options or BuildOptions()
    if not options.should_transform(path, source):
        logger.debug(f"Skipping {path}")
        return source
    tree, rewritten = transform_tree(ast.parse(source, filename=path), source, path)
    if not rewritten:
        return source
    return ast.unparse(tree) + "\n"
