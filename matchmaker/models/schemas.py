from pydantic import BaseModel, Field


class DocumentCreatedEvent(BaseModel):
    """Creation notice for any document; only profiles/projects enqueue a job"""
    collection: str = Field(..., min_length=1)
    doc_id: str = Field(..., min_length=1)
