from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from article_api.cache import CacheStore
from article_api.database import get_db
from article_api.dependencies import ListArticlesParams, get_cache_store, get_current_user
from article_api.schemas import ArticleCreate, ArticleListResponse, ArticleResponse, ArticleUpdate
from article_api.services import article_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

@router.get("", response_model=ArticleListResponse)
async def list_articles(
    params: ListArticlesParams = Depends(),
    db: AsyncSession = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
):
    return await article_service.list_articles(db, store, params.to_query())

@router.get("/{article_id}", response_model=ArticleResponse)
async def get_article(
    article_id: str,
    db: AsyncSession = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
):
    return await article_service.get_article(db, store, article_id)

@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    data: ArticleCreate,
    user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
):
    return await article_service.create_article(db, store, user["sub"], data)

@router.put("/{article_id}", response_model=ArticleResponse)
async def update_article(
    article_id: str,
    data: ArticleUpdate,
    user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
):
    return await article_service.update_article(db, store, user["sub"], article_id, data)

@router.delete("/{article_id}", status_code=204)
async def delete_article(
    article_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
):
    await article_service.delete_article(db, store, user["sub"], article_id)
