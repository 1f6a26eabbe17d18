# catalog.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request

from .db import Store, parse_object_id, serialize_doc
from .errors import NotFound
from .models import AuthorCreated, AuthorIn, BookCreated, BookIn, MessageResponse
from .sessions import require_user
from .validation import valid_id

logger = logging.getLogger(__name__)

BOOK_FIELDS = (
    "title", "author", "isbn", "publishYear", "genre",
    "description", "availableCopies", "totalCopies",
)
AUTHOR_FIELDS = ("name", "birthYear", "nationality", "biography", "books")


class CatalogRepository:
    """CRUD over one catalog collection; ids arrive already format-checked"""

    def __init__(self, store: Store, collection: str, fields: tuple):
        self.store = store
        self.collection = collection
        self.fields = fields

    @property
    def _coll(self):
        return self.store.db[self.collection]

    def _pick(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {f: payload.get(f) for f in self.fields}

    async def list(self) -> List[Dict[str, Any]]:
        docs = await self._coll.find().to_list(length=None)
        return [serialize_doc(d) for d in docs]

    async def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        doc = await self._coll.find_one({"_id": parse_object_id(item_id)})
        return serialize_doc(doc)

    async def create(self, payload: Dict[str, Any]) -> str:
        doc = self._pick(payload)
        doc["createdAt"] = datetime.now(timezone.utc)
        result = await self._coll.insert_one(doc)
        logger.info("created %s %s", self.collection, result.inserted_id)
        return str(result.inserted_id)

    async def update(self, item_id: str, payload: Dict[str, Any]) -> bool:
        update = self._pick(payload)
        update["updatedAt"] = datetime.now(timezone.utc)
        result = await self._coll.update_one({"_id": parse_object_id(item_id)}, {"$set": update})
        return result.matched_count > 0

    async def delete(self, item_id: str) -> bool:
        result = await self._coll.delete_one({"_id": parse_object_id(item_id)})
        return result.deleted_count > 0


def get_books(request: Request) -> CatalogRepository:
    return request.app.state.books

def get_authors(request: Request) -> CatalogRepository:
    return request.app.state.authors


# --------------------------- books ---------------------------
# every books route sits behind the session gate

books_router = APIRouter(prefix="/books", tags=["Books"], dependencies=[Depends(require_user)])

@books_router.get("")
async def list_books(repo: CatalogRepository = Depends(get_books)):
    return await repo.list()

@books_router.get("/{id}")
async def get_book(id: str = Depends(valid_id), repo: CatalogRepository = Depends(get_books)):
    book = await repo.get(id)
    if book is None:
        raise NotFound("Book not found")
    return book

@books_router.post("", status_code=201, response_model=BookCreated)
async def create_book(payload: BookIn, repo: CatalogRepository = Depends(get_books)):
    return BookCreated(bookId=await repo.create(payload.model_dump()))

@books_router.put("/{id}", response_model=MessageResponse)
async def update_book(payload: BookIn,
                      id: str = Depends(valid_id),
                      repo: CatalogRepository = Depends(get_books)):
    if not await repo.update(id, payload.model_dump()):
        raise NotFound("Book not found")
    return MessageResponse(message="Book updated successfully")

@books_router.delete("/{id}", response_model=MessageResponse)
async def delete_book(id: str = Depends(valid_id), repo: CatalogRepository = Depends(get_books)):
    if not await repo.delete(id):
        raise NotFound("Book not found")
    return MessageResponse(message="Book deleted successfully")


# -------------------------- authors --------------------------

authors_router = APIRouter(prefix="/authors", tags=["Authors"])

@authors_router.get("")
async def list_authors(repo: CatalogRepository = Depends(get_authors)):
    return await repo.list()

@authors_router.get("/{id}")
async def get_author(id: str = Depends(valid_id), repo: CatalogRepository = Depends(get_authors)):
    author = await repo.get(id)
    if author is None:
        raise NotFound("Author not found")
    return author

@authors_router.post("", status_code=201, response_model=AuthorCreated)
async def create_author(payload: AuthorIn, repo: CatalogRepository = Depends(get_authors)):
    return AuthorCreated(authorId=await repo.create(payload.model_dump()))

@authors_router.put("/{id}", response_model=MessageResponse)
async def update_author(payload: AuthorIn,
                        id: str = Depends(valid_id),
                        repo: CatalogRepository = Depends(get_authors)):
    if not await repo.update(id, payload.model_dump()):
        raise NotFound("Author not found")
    return MessageResponse(message="Author updated successfully")

@authors_router.delete("/{id}", response_model=MessageResponse)
async def delete_author(id: str = Depends(valid_id), repo: CatalogRepository = Depends(get_authors)):
    if not await repo.delete(id):
        raise NotFound("Author not found")
    return MessageResponse(message="Author deleted successfully")
