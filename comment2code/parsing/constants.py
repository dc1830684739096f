"""Comment prefix tables used by the trigger grammar."""

from __future__ import annotations

DEFAULT_TRIGGER = "@ai:"

# Matching priority. The first prefix whose pattern matches wins, so changing
# this order changes which style is reported for ambiguous lines.
COMMENT_PREFIXES: tuple[tuple[str, str | None], ...] = (
    ("//", None),  # C-style
    ("#", None),  # shell, Python, Ruby
    ("--", None),  # Lua, SQL, Haskell
    (";", None),  # Lisp, Clojure
    ('"', None),  # Vim script
    ("%", None),  # Erlang, LaTeX
    ("/*", "*/"),  # CSS and C block comments
    ("<!--", "-->"),  # HTML, XML, Markdown
)

DEFAULT_PREFIX = "//"

PREFIX_BY_FILETYPE: dict[str, str] = {
    "lua": "--",
    "python": "#",
    "javascript": "//",
    "typescript": "//",
    "javascriptreact": "//",
    "typescriptreact": "//",
    "c": "//",
    "cpp": "//",
    "rust": "//",
    "go": "//",
    "java": "//",
    "kotlin": "//",
    "swift": "//",
    "ruby": "#",
    "php": "//",
    "sh": "#",
    "bash": "#",
    "zsh": "#",
    "fish": "#",
    "vim": '"',
    "sql": "--",
    "haskell": "--",
    "elixir": "#",
    "erlang": "%",
    "clojure": ";",
    "lisp": ";",
    "scheme": ";",
    "r": "#",
    "julia": "#",
    "perl": "#",
    "yaml": "#",
    "toml": "#",
    "dockerfile": "#",
    "make": "#",
    "cmake": "#",
    "css": "/*",
    "scss": "//",
    "less": "//",
    "html": "<!--",
    "xml": "<!--",
    "markdown": "<!--",
}

FILETYPE_BY_SUFFIX: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".lua": "lua",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".swift": "swift",
    ".rb": "ruby",
    ".php": "php",
    ".sh": "sh",
    ".bash": "bash",
    ".zsh": "zsh",
    ".fish": "fish",
    ".vim": "vim",
    ".sql": "sql",
    ".hs": "haskell",
    ".ex": "elixir",
    ".exs": "elixir",
    ".erl": "erlang",
    ".clj": "clojure",
    ".lisp": "lisp",
    ".scm": "scheme",
    ".r": "r",
    ".jl": "julia",
    ".pl": "perl",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
    ".html": "html",
    ".xml": "xml",
    ".md": "markdown",
}

FILETYPE_BY_NAME: dict[str, str] = {
    "Dockerfile": "dockerfile",
    "Makefile": "make",
    "CMakeLists.txt": "cmake",
}


__all__ = [
    "COMMENT_PREFIXES",
    "DEFAULT_PREFIX",
    "DEFAULT_TRIGGER",
    "FILETYPE_BY_NAME",
    "FILETYPE_BY_SUFFIX",
    "PREFIX_BY_FILETYPE",
]
