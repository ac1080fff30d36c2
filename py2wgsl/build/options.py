"""Options shared by the build adapters."""

import re
from dataclasses import dataclass, field

# Raw-text checks used when no include option is given
IMPORT_PATTERNS = [
    re.compile(r"^\s*from\s+py2wgsl(\.\w+)*\s+import\b", re.MULTILINE),
    re.compile(r"^\s*import\s+.*\bpy2wgsl\b", re.MULTILINE),
    re.compile(r"""(__import__|import_module)\(\s*['"]py2wgsl\b"""),
]


@dataclass
class BuildOptions:
    """Which modules the build adapters rewrite.

    Attributes:
        include: ``"all"`` to scan every module, a list of regular expressions
            searched in the module path, or None to scan only modules whose
            text imports py2wgsl
    """

    include: str | list[str | re.Pattern[str]] | None = None
    _patterns: list[re.Pattern[str]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.include, str) and self.include != "all":
            raise ValueError(
                f"include must be 'all' or a list of patterns, got {self.include!r}"
            )
        patterns = self.include if isinstance(self.include, list) else []
        self._patterns = [re.compile(p) if isinstance(p, str) else p for p in patterns]

    def should_transform(self, path: str | None, source: str) -> bool:
        """Decide whether a module gets scanned for shader call sites.

        Args:
            path: Module file path, if known
            source: Raw module text

        Returns:
            True if the module should be transformed
        """
        if self.include is None:
            return any(pattern.search(source) for pattern in IMPORT_PATTERNS)
        if self.include == "all":
            return True
        return path is not None and any(p.search(path) for p in self._patterns)
