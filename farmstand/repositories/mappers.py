"""
Mapping between stored order rows and the canonical Order entity
"""
from farmstand.models.order import Order as OrderRow
from farmstand.schemas.order import CustomerContact, Order, OrderLine


def to_order_entity(row: OrderRow) -> Order:
    """
    Build the in-memory Order from a database row

    Raises:
        pydantic.ValidationError: If the stored row has an invalid shape
    """
    return Order(
        id=row.id,
        user_id=row.user_id,
        customer=CustomerContact(
            name=row.customer_name,
            email=row.customer_email,
            phone=row.customer_phone,
            address=row.delivery_address,
        ),
        items=[
            OrderLine(
                product_id=item.product_id,
                product_name=item.product_name,
                unit_price=item.unit_price,
                quantity=item.quantity,
                subtotal=item.total_price,
            )
            for item in row.items
        ],
        subtotal=row.subtotal,
        tax=row.tax_amount,
        total=row.total_amount,
        fulfillment_type=row.fulfillment_type,
        status=row.status,
        payment_method=row.payment_method,
        payment_status=row.payment_status,
        pickup_date=row.pickup_date,
        pickup_time=row.pickup_time,
        special_instructions=row.special_instructions,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
