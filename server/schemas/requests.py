"""Pydantic request models for FastAPI endpoints.

Field names are snake_case; the camelCase names used by existing clients
(``blogContent``, ``anthropicKey``, ...) are accepted as aliases.
"""

from pydantic import BaseModel, ConfigDict, Field

from models.pipeline import PipelineRequest, SearchProviderName


class SmartCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Required fields are checked by the pipeline so every error uses the same envelope
    content: str = Field("", alias="blogContent")
    title: str = ""
    llm_provider: str = Field("anthropic", alias="llmProvider")
    anthropic_key: str | None = Field(None, alias="anthropicKey")
    openai_key: str | None = Field(None, alias="openaiKey")
    brave_key: str | None = Field(None, alias="braveKey")
    tavily_key: str | None = Field(None, alias="tavilyKey")
    writing_prompt: str | None = Field(None, alias="writingPrompt")
    keywords: list[str] = Field(default_factory=list, max_length=50)
    target_keyword: str | None = Field(None, alias="targetKeyword")

    def to_pipeline_request(self) -> PipelineRequest:
        provider = (self.llm_provider or "anthropic").strip().lower()
        llm_key = self.openai_key if provider == "openai" else self.anthropic_key

        search_keys: dict[SearchProviderName, str] = {}
        if self.brave_key and self.brave_key.strip():
            search_keys[SearchProviderName.BRAVE] = self.brave_key.strip()
        if self.tavily_key and self.tavily_key.strip():
            search_keys[SearchProviderName.TAVILY] = self.tavily_key.strip()

        return PipelineRequest(
            content=self.content,
            title=self.title,
            llm_key=(llm_key or "").strip(),
            search_keys=search_keys,
            llm_provider=provider,
            writing_prompt=self.writing_prompt or None,
            keywords=tuple(k.strip() for k in self.keywords if k and k.strip()),
            target_keyword=self.target_keyword or None,
        )


class AssetUploadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    site_id: str = Field(..., min_length=1, alias="siteId")
    file_name: str = Field(..., min_length=1, alias="fileName")
    content_type: str = Field("application/octet-stream", alias="contentType")
    data: str = Field(..., min_length=1, description="Base64-encoded file content")
