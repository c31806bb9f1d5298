"""Invoice and payment procedures."""

from app.rpc.router import Router, ADMIN
from services.invoice_service import InvoiceService
from validators import ID, STRING, NUMBER, BOOL, OBJECT, list_of

INVOICE_FIELDS = {
    'projectId': ID, 'clientId': ID, 'amount': NUMBER, 'currency': STRING, 'dueDate': STRING,
    'description': STRING, 'items': list_of(OBJECT),
}

router = Router('payment')


def _service(ctx) -> InvoiceService:
    return InvoiceService(ctx.session, ctx.user, ctx.tasks, ctx.email_service)


@router.query('getClientInvoices')
def get_client_invoices(ctx, input):
    return _service(ctx).get_client_invoices()


@router.query('getInvoiceById', schema={'id': ID})
def get_invoice_by_id(ctx, input):
    return _service(ctx).get_invoice_by_id(input.get('id'))


@router.query('getInvoiceDetails', schema={'id': ID})
def get_invoice_details(ctx, input):
    return _service(ctx).get_invoice_details(input.get('id'))


@router.query('getAllInvoices', access=ADMIN)
def get_all_invoices(ctx, input):
    return _service(ctx).get_all_invoices()


@router.query('getPaymentStats', access=ADMIN)
def get_payment_stats(ctx, input):
    return _service(ctx).get_payment_stats()


@router.mutation('createInvoice', access=ADMIN, schema=INVOICE_FIELDS)
def create_invoice(ctx, input):
    return _service(ctx).create_invoice(input)


@router.mutation('updateInvoice', access=ADMIN, schema=dict(INVOICE_FIELDS, id=ID, status=STRING))
def update_invoice(ctx, input):
    return _service(ctx).update_invoice(input)


@router.mutation('deleteInvoice', access=ADMIN, schema={'id': ID})
def delete_invoice(ctx, input):
    return _service(ctx).delete_invoice(input.get('id'))


@router.mutation('recordPayment', access=ADMIN, schema={
    'invoiceId': ID, 'amount': NUMBER, 'paymentMethod': STRING, 'notes': STRING,
})
def record_payment(ctx, input):
    return _service(ctx).record_payment(input)


@router.mutation('sendInvoiceReminders', access=ADMIN, schema={'invoiceId': ID, 'checkOverdue': BOOL})
def send_invoice_reminders(ctx, input):
    return _service(ctx).send_reminders(
        invoice_id=input.get('invoiceId'),
        check_overdue=bool(input.get('checkOverdue'))
    )
