"""Domain models for the PayPal RESTful integration."""

from paypal_restful.models.errors import (
    ERR_CANT_UPDATE,
    ERR_CURL_ERROR,
    ERR_NO_CHANNEL,
    ERR_NO_ERROR,
    AuthExpired,
    DiffNotAllowed,
    ErrorDetail,
    ErrorInfo,
    ErrorKind,
    NoChannel,
    ProcessorError,
    ProtocolError,
    TransportError,
    UnexpectedStatus,
)
from paypal_restful.models.order import (
    FieldPath,
    OrderSnapshot,
    OrderStatus,
    PatchOp,
    PatchOperation,
)
from paypal_restful.models.transaction import (
    PaymentCategory,
    TransactionRecord,
    TxnType,
)

__all__ = [
    "ERR_CANT_UPDATE",
    "ERR_CURL_ERROR",
    "ERR_NO_CHANNEL",
    "ERR_NO_ERROR",
    "AuthExpired",
    "DiffNotAllowed",
    "ErrorDetail",
    "ErrorInfo",
    "ErrorKind",
    "FieldPath",
    "NoChannel",
    "OrderSnapshot",
    "OrderStatus",
    "PatchOp",
    "PatchOperation",
    "PaymentCategory",
    "ProcessorError",
    "ProtocolError",
    "TransactionRecord",
    "TransportError",
    "TxnType",
    "UnexpectedStatus",
]
