"""Reports blueprint - dashboard summary and CSV downloads."""
from datetime import date
from flask import Blueprint, request, jsonify, Response, current_app
from app.database import get_session
from app.middleware import require_admin
from app.services.catalog_service import BookCatalog
from app.services.customer_service import CustomerDirectory
from app.services.sales_service import SalesService
from app.services import report_service
from app.utils.formatters import book_to_dict, jsonable
from app.utils.request_args import date_window

reports_bp = Blueprint('reports', __name__, url_prefix='/reports')


@reports_bp.route('/summary', methods=['GET'])
@require_admin
def summary():
    """
    Dashboard numbers for a window (start/end, YYYY-MM-DD, both optional).

    Combines the sales window summary with today's figures, catalog and
    customer aggregates and the top sellers.
    """
    db_session = get_session()
    start, end = date_window()
    top_limit = current_app.config.get('TOP_LIST_LIMIT', 10)

    catalog = BookCatalog(db_session, current_app.config.get('LOW_STOCK_THRESHOLD', 2))
    directory = CustomerDirectory(
        db_session,
        new_customer_days=current_app.config.get('NEW_CUSTOMER_DAYS', 30),
        regular_min_purchases=current_app.config.get('REGULAR_CUSTOMER_MIN_PURCHASES', 3),
    )
    sales = SalesService(db_session, catalog)

    data = {
        'window': report_service.sales_summary(db_session, start, end),
        'today': sales.today(),
        'top_books': sales.top_selling_books(top_limit, start, end),
        'catalog': catalog.stats(),
        'low_stock': [book_to_dict(b) for b in catalog.low_stock_books()],
        'customers': directory.stats(top_limit),
    }
    return jsonify(jsonable(data))


@reports_bp.route('/export.csv', methods=['GET'])
@require_admin
def export_csv():
    """CSV download of report=sales|books|customers|top_books for the window."""
    report = request.args.get('report', 'sales').strip()
    start, end = date_window()

    rows = report_service.report_rows(
        get_session(), report, start, end,
        top_limit=current_app.config.get('TOP_LIST_LIMIT', 10)
    )
    filename = f"{report}_{(end or date.today()).isoformat()}.csv"
    current_app.logger.info(f"CSV export: {report} ({len(rows) - 1} rows)")

    return Response(
        report_service.to_csv(rows),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )
