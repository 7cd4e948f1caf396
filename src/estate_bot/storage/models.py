"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class ConversationRecord:
    session_key: str
    status: str = "active"
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_phone: Optional[str] = None
    last_response_source: Optional[str] = None
    total_tokens: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass
class MessageRecord:
    conversation_id: int
    role: str  # "user" | "assistant"
    content: str
    source: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    tokens: int = 0
    created_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass
class ContextRecord:
    """Persisted layout of one conversation's context."""

    conversation_id: int
    collected_info: dict[str, Any] = field(default_factory=dict)
    search_criteria: dict[str, Any] = field(default_factory=dict)
    shown_entities: list[dict[str, Any]] = field(default_factory=list)
    active_entity_id: Optional[str] = None
    active_entity: Optional[dict[str, Any]] = None
    updated_at: Optional[datetime] = None


@dataclass
class CacheEntry:
    question_hash: str
    question: str
    response: str
    response_type: str
    confidence: float
    context_hash: Optional[str] = None
    tokens_used: int = 0
    hit_count: int = 0
    expires_at: Optional[float] = None
    last_accessed: Optional[float] = None
    created_at: float = 0.0
    id: Optional[int] = None


@dataclass
class FaqEntry:
    question: str
    answer: str
    keywords: str = ""
    category: str = "general"
    is_active: bool = True
    usage_count: int = 0
    id: Optional[int] = None


@dataclass
class LeadSubmission:
    form_type: str  # "tour" | "contact"
    first_name: str
    email: str
    last_name: str = ""
    phone: str = ""
    message: str = ""
    listing_id: Optional[str] = None
    inquiry_type: str = "general"
    conversation_id: Optional[int] = None
    status: str = "new"
    source: str = "ai_chatbot"
    id: Optional[int] = None


@dataclass
class UsageRecord:
    provider: str
    day: str
    request_count: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    estimated_cost: float = 0.0
