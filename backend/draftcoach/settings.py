from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
	openai_base_url: str = Field(default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL")
	# Model for the initial instruction and the iterative draft feedback
	openai_guidance_model: str = Field(default="o1-2024-12-17", validation_alias="OPENAI_GUIDANCE_MODEL")
	# Model for draft comparison and the three-category feedback
	openai_compare_model: str = Field(default="gpt-4o-2024-08-06", validation_alias="OPENAI_COMPARE_MODEL")
	openai_romanize_model: str = Field(default="gpt-4", validation_alias="OPENAI_ROMANIZE_MODEL")
	openai_image_model: str = Field(default="dall-e-3", validation_alias="OPENAI_IMAGE_MODEL")
	openai_image_size: str = Field(default="1024x1792", validation_alias="OPENAI_IMAGE_SIZE")

	# OpenRouter fallback configuration (optional, text completions only)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="openai/gpt-4o-mini", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="DraftCoach", validation_alias="OPENROUTER_TITLE")

	# Text-to-speech
	elevenlabs_api_key: str | None = Field(default=None, validation_alias="ELEVENLABS_API_KEY")
	elevenlabs_base_url: str = Field(default="https://api.elevenlabs.io/v1", validation_alias="ELEVENLABS_BASE_URL")
	elevenlabs_voice_id: str = Field(default="Ha21jUwaMwdgQvqNslSM", validation_alias="ELEVENLABS_VOICE_ID")
	elevenlabs_model_id: str = Field(default="eleven_multilingual_v2", validation_alias="ELEVENLABS_MODEL_ID")

	# Generated media is written under media_dir and served from media_base_url
	media_dir: str = Field(default="./media", validation_alias="MEDIA_DIR")
	media_base_url: str = Field(default="/media", validation_alias="MEDIA_BASE_URL")

	# Optional override for the packaged conversation fixtures
	conversations_dir: str | None = Field(default=None, validation_alias="CONVERSATIONS_DIR")

	http_timeout_seconds: float = Field(default=60, validation_alias="HTTP_TIMEOUT_SECONDS")
	cors_origins: str = Field(default="*", validation_alias="CORS_ORIGINS")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
	journal_retention_days: int = Field(default=7, validation_alias="JOURNAL_RETENTION_DAYS")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@property
	def cors_origin_list(self) -> list[str]:
		return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

settings = Settings()
