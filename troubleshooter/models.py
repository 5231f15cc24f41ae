"""
Troubleshooter API Models

Pydantic models for request/response validation.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# Auth models

class LoginRequest(BaseModel):
    """Admin credentials."""
    username: Optional[str] = Field(None, description="Admin username")
    password: Optional[str] = Field(None, description="Admin password")


class LoginResponse(BaseModel):
    """Issued bearer token."""
    ok: bool = True
    token: str = Field(..., description="JWT bearer token")
    expires_in: str = Field("8h", alias="expiresIn", description="Token lifetime")


# Settings models

class SettingsResponse(BaseModel):
    """Sanitized settings of the current user."""
    ok: bool = True
    settings: Dict[str, Any] = Field(..., description="User settings")


# Script library models

class ScriptUploadResponse(BaseModel):
    ok: bool = True
    script: Dict[str, Any] = Field(..., description="Stored script metadata")
    message: str = "Script uploaded successfully"


class ScriptListResponse(BaseModel):
    ok: bool = True
    scripts: List[Dict[str, Any]] = Field(default_factory=list, description="Script metadata, newest first")
    count: int = 0


class ScriptDetailResponse(BaseModel):
    ok: bool = True
    script: Dict[str, Any] = Field(..., description="Script metadata")
    content: str = Field(..., description="Script text")


class MessageResponse(BaseModel):
    ok: bool = True
    message: str


# Chat models

class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    """Reply from the LLM."""
    ok: bool = True
    text: str = Field(..., description="Assistant reply")
    model: Optional[str] = Field(None, description="Model that answered")
    usage: TokenUsage = Field(default_factory=TokenUsage)


# Playbook models

class AnalyzeRequest(BaseModel):
    """Problem description to match against the playbook catalog."""
    category: Optional[str] = Field("", description="Playbook category, e.g. 'network'")
    device: Optional[str] = Field("", description="Target platform used to pick commands")
    context: Optional[str] = Field("", description="Free-form environment context")
    description: Optional[str] = Field("", description="Problem description")


class PlaybookMatchSummary(BaseModel):
    name: str
    score: int
    keywords: List[str] = Field(default_factory=list)
    questions: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    commands: List[str] = Field(default_factory=list, description="Commands for the requested device")


class AnalyzeResponse(BaseModel):
    ok: bool = True
    match: Optional[PlaybookMatchSummary] = Field(None, description="Best playbook, null if no strong match")
    report: str = Field(..., description="Plain-text report")


class PlaybookCategory(BaseModel):
    category: str
    playbooks: List[str] = Field(default_factory=list)


class PlaybookListResponse(BaseModel):
    ok: bool = True
    categories: List[PlaybookCategory] = Field(default_factory=list)


# Error response model

class ErrorResponse(BaseModel):
    """Error response."""
    ok: bool = False
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
