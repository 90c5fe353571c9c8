from typing import List

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_admin_user, get_current_user_id, get_promotion_service
from app.models.checkout import User
from app.models.promotion import (
    CartPromotionPreview,
    Promotion,
    PromotionCreate,
    PromotionUpdate,
)
from app.services.promotion_service import PromotionService

router = APIRouter(prefix="/promotions", tags=["促销"])
admin_router = APIRouter(prefix="/admin/promotions", tags=["促销管理"])


@router.get("/cart-preview", response_model=CartPromotionPreview)
async def preview_cart_promotions(
    user_id: int = Depends(get_current_user_id),
    service: PromotionService = Depends(get_promotion_service)
):
    """当前购物车可享受的促销"""
    return await service.preview_cart(user_id)


@router.get("/active", response_model=List[Promotion])
async def list_active_promotions(
    service: PromotionService = Depends(get_promotion_service)
):
    """当前进行中的促销"""
    return await service.get_active_promotions()


@admin_router.get("", response_model=List[Promotion])
async def list_promotions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(get_admin_user),
    service: PromotionService = Depends(get_promotion_service)
):
    return await service.list_promotions(limit=limit, offset=offset)


@admin_router.get("/{promotion_id}", response_model=Promotion)
async def get_promotion(
    promotion_id: int,
    admin: User = Depends(get_admin_user),
    service: PromotionService = Depends(get_promotion_service)
):
    return await service.get_promotion(promotion_id)


@admin_router.post("", status_code=201, response_model=Promotion)
async def create_promotion(
    body: PromotionCreate,
    user_id: int = Depends(get_current_user_id),
    service: PromotionService = Depends(get_promotion_service)
):
    return await service.create_promotion(body, actor_id=user_id)


@admin_router.put("/{promotion_id}", response_model=Promotion)
async def update_promotion(
    promotion_id: int,
    body: PromotionUpdate,
    user_id: int = Depends(get_current_user_id),
    service: PromotionService = Depends(get_promotion_service)
):
    return await service.update_promotion(promotion_id, body, actor_id=user_id)


@admin_router.delete("/{promotion_id}", status_code=204)
async def delete_promotion(
    promotion_id: int,
    user_id: int = Depends(get_current_user_id),
    service: PromotionService = Depends(get_promotion_service)
):
    await service.delete_promotion(promotion_id, actor_id=user_id)
