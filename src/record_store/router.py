from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Path, Request, status

from record_store.adapter import DocumentStore

router = APIRouter(prefix="/api", tags=["records"])


def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.document_store


@router.get("/{collection}")
def list_records(
    collection: str = Path(..., description="Collection name"),
    store: DocumentStore = Depends(get_document_store),
) -> List[Dict[str, Any]]:
    """All documents of a collection in insertion order; empty for a collection never written."""
    return store.list_documents(collection)


@router.get("/{collection}/{record_id}")
def get_record(
    collection: str = Path(..., description="Collection name"),
    record_id: str = Path(..., description="Document id"),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return store.get_document(collection, record_id)


@router.post("/{collection}", status_code=status.HTTP_201_CREATED)
def create_record(
    collection: str = Path(..., description="Collection name"),
    document: Dict[str, Any] = Body(..., description="Document to store; an id is assigned when absent"),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    """Create a document. A body whose `id` is already taken is rejected with 409."""
    return store.create_document(collection, document)


@router.put("/{collection}/{record_id}")
def replace_record(
    collection: str = Path(..., description="Collection name"),
    record_id: str = Path(..., description="Document id"),
    document: Dict[str, Any] = Body(..., description="Replacement document"),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return store.replace_document(collection, record_id, document)


@router.delete("/{collection}/{record_id}")
def delete_record(
    collection: str = Path(..., description="Collection name"),
    record_id: str = Path(..., description="Document id"),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    store.delete_document(collection, record_id)
    return {"success": True, "id": record_id}
