"""Config Port - configuration models shared by every layer."""

from pydantic import BaseModel, ConfigDict

# Globs excluded from every workspace scan. Entries ending with "/" match any
# directory component; others match the relative path or the file name.
DEFAULT_EXCLUDE_GLOBS = [
    # VCS / editor internals
    ".git/",
    ".svn/",
    ".hg/",
    ".vscode/",
    ".idea/",
    ".vs/",
    ".history/",
    # Dependencies, caches, build output
    "node_modules/",
    "__pycache__/",
    ".venv/",
    "venv/",
    ".pytest_cache/",
    ".mypy_cache/",
    ".ruff_cache/",
    ".tox/",
    ".cache/",
    ".next/",
    "dist/",
    "out/",
    "build/",
    "output/",
    # Lock files, logs, secrets
    "*.lock",
    "*.log",
    ".env*",
    ".DS_Store",
    "package.json",
    "package-lock.json",
    "pnpm-lock.yaml",
    # Binary / media
    "*.pyc",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.bmp",
    "*.svg",
    "*.ico",
    "*.pdf",
    "*.doc",
    "*.docx",
    "*.xls",
    "*.xlsx",
    "*.ppt",
    "*.pptx",
    "*.zip",
    "*.tar",
    "*.gz",
    "*.7z",
    "*.rar",
    "*.exe",
    "*.dll",
    "*.so",
    "*.dylib",
    "*.mp3",
    "*.mp4",
    "*.avi",
    "*.mov",
    "*.wasm",
    "*.node",
    "*.afdesign",
]


class OllamaConfig(BaseModel):
    """Ollama connection configuration."""

    host: str = "http://localhost:11434"
    timeout: int = 120


class OpenAICompatibleConfig(BaseModel):
    """LM Studio, vLLM, LocalAI - OpenAI-compatible API."""

    base_url: str = "http://localhost:1234/v1"
    api_key: str = ""
    timeout: int = 120


class EmbeddingsConfig(BaseModel):
    """Embeddings for RAG."""

    # "ollama" | "openai_compatible" | "hashing" | "auto" (ollama, hashing on failure)
    provider: str = "auto"
    model: str = "nomic-embed-text"
    hashing_dimension: int = 512


class SecurityConfig(BaseModel):
    """Security settings."""

    rate_limit_requests_per_minute: int = 100
    cors_origins: list[str] = ["http://localhost:5173"]


class RAGConfig(BaseModel):
    """Workspace index settings."""

    storage_dir: str = "output/memox"
    index_filename: str = "code_index.json"
    workspace_roots: list[str] = ["."]
    exclude_globs: list[str] = DEFAULT_EXCLUDE_GLOBS
    chunk_lines: int = 50
    max_file_size: int = 1024 * 1024  # Larger files are skipped, not truncated
    max_file_count: int = 10000
    respect_gitignore: bool = True
    batch_size: int = 64  # Chunks per embed_batch request
    embed_timeout: float = 60.0  # Seconds per file before it is marked failed
    default_k: int = 5
    default_max_tokens: int = 1024

    model_config = ConfigDict(extra="ignore")


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


class AppConfig(BaseModel):
    """Full application configuration."""

    server: ServerConfig = ServerConfig()
    ollama: OllamaConfig = OllamaConfig()
    openai_compatible: OpenAICompatibleConfig = OpenAICompatibleConfig()
    embeddings: EmbeddingsConfig = EmbeddingsConfig()
    security: SecurityConfig = SecurityConfig()
    rag: RAGConfig = RAGConfig()
    log_level: str = "INFO"
    # Log file: path relative to cwd or absolute. Empty = only stdout. Rotation when file exceeds max_mb.
    log_file: str = ""
    log_rotation_max_mb: int = 5
    log_rotation_backups: int = 3
