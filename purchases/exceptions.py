"""Business errors raised while granting or changing purchase access."""


class PurchaseError(Exception):
    """Base class for expected purchase conditions (not system faults)."""


class ProductNotFound(PurchaseError):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__("Product not found")


class AlreadyHasAccess(PurchaseError):
    def __init__(self, buyer_id, product_id):
        self.buyer_id = buyer_id
        self.product_id = product_id
        super().__init__("You already have access to this product")


class PurchaseNotFound(PurchaseError):
    pass


class InvalidStatusTransition(PurchaseError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move purchase from '{current}' to '{target}'")
