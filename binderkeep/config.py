from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

SlotMode = Literal["strict", "permissive"]


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "BinderKeep"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/binderkeep"

    # Slot cap enforcement for decks created without an explicit mode
    default_slot_mode: SlotMode = "strict"

    # Releasing a deck puts cards back in the folder they were reserved from,
    # but only for rows no other deck still holds
    restore_folder_on_release: bool = False

    # Serialization failures and unique-constraint races are retried this many times
    max_transaction_retries: int = 3

    # Header the auth middleware uses to hand the owner id to the core
    owner_header: str = "X-Owner-Id"


settings = Settings()


# =============================================================================
# FOLDERS
# =============================================================================

# Default folder for new inventory rows
UNCATEGORIZED_FOLDER = "Uncategorized"

# Tombstone folder: excluded from the All Cards view, purgeable when unreserved
TRASH_FOLDER = "Trash"

# Always present for every owner; never stored in the folders table
BUILTIN_FOLDERS = frozenset({UNCATEGORIZED_FOLDER, TRASH_FOLDER})

MAX_FOLDER_NAME_LENGTH = 255

CARD_QUALITIES = ("NM", "LP", "MP", "HP", "DMG")
