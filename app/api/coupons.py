from typing import List

from fastapi import APIRouter, Depends

from app.api.dependencies import get_coupon_service, get_current_user_id
from app.models.coupon import (
    Coupon,
    CouponCreate,
    CouponUpdate,
    CouponValidation,
    ValidateCouponRequest,
)
from app.services.coupon_service import CouponService

router = APIRouter(prefix="/coupons", tags=["优惠券"])
admin_router = APIRouter(prefix="/admin/coupons", tags=["优惠券管理"])


@router.get("", response_model=List[Coupon])
async def get_valid_coupons(service: CouponService = Depends(get_coupon_service)):
    """当前可用的优惠券"""
    return await service.get_valid_coupons()


@router.post("/validate", response_model=CouponValidation)
async def validate_coupon(
    body: ValidateCouponRequest,
    service: CouponService = Depends(get_coupon_service)
):
    """校验优惠券并预览折扣"""
    return await service.validate_coupon(body.code, body.order_total)


@router.get("/{code}", response_model=Coupon)
async def get_coupon(code: str, service: CouponService = Depends(get_coupon_service)):
    return await service.get_coupon_by_code(code)


@admin_router.post("", status_code=201, response_model=Coupon)
async def create_coupon(
    body: CouponCreate,
    user_id: int = Depends(get_current_user_id),
    service: CouponService = Depends(get_coupon_service)
):
    return await service.create_coupon(body, actor_id=user_id)


@admin_router.put("/{coupon_id}", response_model=Coupon)
async def update_coupon(
    coupon_id: int,
    body: CouponUpdate,
    user_id: int = Depends(get_current_user_id),
    service: CouponService = Depends(get_coupon_service)
):
    return await service.update_coupon(coupon_id, body, actor_id=user_id)


@admin_router.delete("/{coupon_id}", status_code=204)
async def delete_coupon(
    coupon_id: int,
    user_id: int = Depends(get_current_user_id),
    service: CouponService = Depends(get_coupon_service)
):
    await service.delete_coupon(coupon_id, actor_id=user_id)
