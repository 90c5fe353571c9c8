from typing import List, Optional

from fastapi import APIRouter, Depends, Query
import logging

from app.api.dependencies import get_admin_user, get_current_user_id, get_order_service
from app.models.checkout import User
from app.models.order import (
    Order,
    OrderStatus,
    OrderStatusHistory,
    PlaceOrderRequest,
    UpdateOrderItemQuantityRequest,
    UpdateOrderStatusRequest,
)
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["订单"])
admin_router = APIRouter(prefix="/admin/orders", tags=["订单管理"])


@router.post("", status_code=201, response_model=Order)
async def place_order(
    body: PlaceOrderRequest,
    user_id: int = Depends(get_current_user_id),
    service: OrderService = Depends(get_order_service)
):
    """用购物车下单"""
    return await service.place_order(
        user_id=user_id,
        shipping_address_id=body.shipping_address_id,
        payment_method_id=body.payment_method_id,
        coupon_code=body.coupon_code,
        notes=body.notes
    )


@router.get("", response_model=List[Order])
async def get_my_orders(
    status: Optional[OrderStatus] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    service: OrderService = Depends(get_order_service)
):
    """当前用户的订单列表"""
    return await service.get_user_orders(user_id, limit=limit, offset=offset, status_filter=status)


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: int,
    user_id: int = Depends(get_current_user_id),
    service: OrderService = Depends(get_order_service)
):
    return await service.get_order(order_id, actor_id=user_id)


@router.get("/{order_id}/history", response_model=List[OrderStatusHistory])
async def get_order_history(
    order_id: int,
    user_id: int = Depends(get_current_user_id),
    service: OrderService = Depends(get_order_service)
):
    return await service.get_order_status_history(order_id, actor_id=user_id)


@admin_router.get("", response_model=List[Order])
async def list_orders(
    status: Optional[OrderStatus] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: User = Depends(get_admin_user),
    service: OrderService = Depends(get_order_service)
):
    """管理端订单列表"""
    return await service.list_orders(admin.id, status=status, limit=limit, offset=offset)


@admin_router.get("/search", response_model=List[Order])
async def search_orders(
    keyword: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: User = Depends(get_admin_user),
    service: OrderService = Depends(get_order_service)
):
    """按订单编号、备注、用户姓名或邮箱搜索订单"""
    return await service.search_orders(admin.id, keyword, limit=limit, offset=offset)


@admin_router.put("/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: int,
    body: UpdateOrderStatusRequest,
    user_id: int = Depends(get_current_user_id),
    service: OrderService = Depends(get_order_service)
):
    """修改订单状态"""
    return await service.update_status(order_id, body.status, body.notes, actor_id=user_id)


@admin_router.put("/{order_id}/items/{item_id}", response_model=Order)
async def update_order_item_quantity(
    order_id: int,
    item_id: int,
    body: UpdateOrderItemQuantityRequest,
    user_id: int = Depends(get_current_user_id),
    service: OrderService = Depends(get_order_service)
):
    """修改订单项数量"""
    return await service.adjust_line_quantity(order_id, item_id, body.quantity, actor_id=user_id)
