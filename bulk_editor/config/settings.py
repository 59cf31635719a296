from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from bulk_editor.replacement.models import HyperlinkReplacementRule, TextReplacementRule

DEFAULT_LOOKUP_ID_PATTERN = r"(TSRC-[^-]+-[0-9]{6}(?![0-9])|CMS-[^-]+-[0-9]{6}(?![0-9]))"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    max_concurrent_documents: int = 5
    document_timeout_seconds: int = 300
    max_file_size_mb: int = 100
    supported_extensions: list[str] = [".docx", ".docm"]
    update_hyperlinks: bool = True
    add_content_ids: bool = True
    remove_invisible_hyperlinks: bool = False
    lookup_id_pattern: str = DEFAULT_LOOKUP_ID_PATTERN

    check_expired_content: bool = True
    auto_replace_titles: bool = False
    report_title_differences: bool = True

    app_data_dir: str = "~/.bulk_editor"
    backup_directory: str = "Backups"
    backup_retention_days: int = 30
    auto_cleanup_old_backups: bool = True

    metadata_provider: str = "http"
    metadata_api_url: str = ""
    metadata_api_key: str = ""
    http_timeout_seconds: int = 30
    http_max_retries: int = 3
    http_retry_base_delay_seconds: float = 0.5
    http_retry_max_delay_seconds: float = 30.0
    http_max_concurrent_requests: int = 10
    metadata_cache_enabled: bool = False
    metadata_cache_ttl_seconds: int = 3600
    user_agent: str = "BulkEditor/1.0"

    document_base_url: str = "https://thesource.cvshealth.com/nuxeo/thesource/"
    document_view_fragment: str = "!/view?docid={document_id}"

    enable_hyperlink_replacement: bool = False
    enable_text_replacement: bool = False
    optimize_text: bool = False
    hyperlink_rules: list[HyperlinkReplacementRule] = []
    text_rules: list[TextReplacementRule] = []
    max_replacement_rules: int = 50

    changelog_directory: str = ""
    changelog_format: str = "json"

    @property
    def backup_root(self) -> Path:
        """Backup directory; relative values live under the app data directory."""
        backup_dir = Path(self.backup_directory).expanduser()
        if backup_dir.is_absolute():
            return backup_dir
        return Path(self.app_data_dir).expanduser() / backup_dir

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024
