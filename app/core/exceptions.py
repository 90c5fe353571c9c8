"""
业务异常定义
所有领域错误都继承BusinessException，由API层统一转换为JSON响应
"""

from typing import Any, Dict, Optional


class BusinessException(Exception):
    """业务异常基类"""

    code = "BUSINESS_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error_code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(BusinessException):
    """输入不合法（调用方错误，不可重试）"""
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(BusinessException):
    """引用的实体不存在"""
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class OwnershipError(BusinessException):
    """实体存在但不属于当前用户"""
    code = "OWNERSHIP_ERROR"
    status_code = 403


class PermissionDeniedError(OwnershipError):
    """非管理员执行管理操作"""
    code = "PERMISSION_DENIED"


class InsufficientStockError(BusinessException):
    """库存不足"""
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id: int, product_name: str, requested: int, available: int):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock for product '{product_name}' (id={product_id}): "
            f"requested {requested}, available {available}, short by {self.shortfall}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested": requested,
                "available": available,
                "shortfall": self.shortfall,
            },
        )


class InvalidAdjustmentError(BusinessException):
    """库存调整后结果为负"""
    code = "INVALID_ADJUSTMENT"
    status_code = 400


class InvalidCouponError(BusinessException):
    """优惠券不可用"""
    code = "INVALID_COUPON"
    status_code = 400

    def __init__(self, code: str, reason: str):
        super().__init__(
            f"Coupon '{code}' cannot be applied: {reason}",
            details={"coupon_code": code, "reason": reason},
        )
        self.coupon_code = code
        self.reason = reason


class InvalidPromotionConfigError(BusinessException):
    """促销配置与类型不一致"""
    code = "INVALID_PROMOTION_CONFIG"
    status_code = 400


class InvalidStatusTransitionError(BusinessException):
    """订单状态机非法流转"""
    code = "INVALID_STATUS_TRANSITION"
    status_code = 409

    def __init__(self, from_status: Any, to_status: Any, reason: Optional[str] = None):
        from_value = getattr(from_status, "value", from_status)
        to_value = getattr(to_status, "value", to_status)
        message = f"Cannot change order status from {from_value} to {to_value}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details={"from_status": from_value, "to_status": to_value})
        self.from_status = from_status
        self.to_status = to_status


class ConcurrencyConflictError(BusinessException):
    """检测到并发更新丢失，可整单重试一次"""
    code = "CONCURRENCY_CONFLICT"
    status_code = 409
