from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Ollama
    ollama_base_url: str = "http://localhost:11434"
    embed_model: str = "nomic-embed-text"
    embed_dim: int = 768
    embed_timeout: float = 5.0

    # 쿼리 리라이트 (LLM)
    llm_model: str = "qwen2.5:7b"
    query_rewrite_enabled: bool = False
    query_rewrite_timeout: float = 10.0

    # PostgreSQL
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "talent"
    db_password: str = "talent"
    db_name: str = "talent_db"

    # Search
    default_page: int = 1
    default_limit: int = 5
    max_limit: int = 50
    retriever_top_k: int = 200
    score_threshold: float = 0.1
    disconnect_poll_interval: float = 0.05

    # History / Popular
    history_page_size: int = 20
    popular_threshold: float = 0.92
    popular_limit: int = 5

    model_config = {"env_prefix": "TALENT_"}

    @property
    def database_url(self) -> str:
        return (
            f"host={self.db_host} port={self.db_port} "
            f"dbname={self.db_name} user={self.db_user} password={self.db_password}"
        )


settings = Settings()
