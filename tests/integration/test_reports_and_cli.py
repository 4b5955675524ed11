"""
Integration tests for the reports endpoints and the Flask CLI commands.
"""

from datetime import date, timedelta
from app.models import Admin, Book, Customer


class TestReportsApi:

    def _sell(self, admin_client, book_id, qty, paid='100'):
        admin_client.post('/sales/draft/items', json={'book_id': book_id, 'qty': qty})
        return admin_client.post('/sales/checkout', json={'amount_paid': paid}).get_json()['sale']

    def test_summary(self, admin_client, book, scarce_book):
        self._sell(admin_client, book.id, 2)
        self._sell(admin_client, scarce_book.id, 3)

        body = admin_client.get('/reports/summary').get_json()

        assert body['window']['sales_count'] == 2
        assert body['window']['items_sold'] == 5
        assert body['today']['count'] == 2
        assert body['catalog']['out_of_stock_count'] == 1
        assert [b['title'] for b in body['low_stock']] == ['Ficciones']
        assert body['top_books'][0]['title'] == 'Ficciones'

    def test_summary_window_validation(self, admin_client):
        today = date.today()
        response = admin_client.get(
            f'/reports/summary?start={today.isoformat()}&end={(today - timedelta(days=1)).isoformat()}'
        )
        assert response.status_code == 400

    def test_csv_export(self, admin_client, book):
        self._sell(admin_client, book.id, 1)

        response = admin_client.get('/reports/export.csv?report=books')

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert 'attachment' in response.headers['Content-Disposition']
        lines = response.data.decode('utf-8').splitlines()
        assert lines[0] == 'id,title,author,isbn,genre,price,stock,inventory_value'
        assert lines[1].endswith(',9,90.00')

    def test_unknown_report_is_400(self, admin_client):
        assert admin_client.get('/reports/export.csv?report=payroll').status_code == 400


class TestCliCommands:

    def test_grant_and_revoke_admin(self, app, session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['grant-admin', '--user-id', 'auth0|cli'])
        assert result.exit_code == 0
        assert 'granted' in result.output
        assert session.get(Admin, 'auth0|cli') is not None

        result = runner.invoke(args=['grant-admin', '--user-id', 'auth0|cli'])
        assert 'already' in result.output

        result = runner.invoke(args=['revoke-admin', '--user-id', 'auth0|cli'])
        assert result.exit_code == 0
        assert session.query(Admin).count() == 0

    def test_seed_demo_is_repeatable(self, app, session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['seed-demo'])
        assert result.exit_code == 0
        assert 'Seeded 5 book(s) and 5 customer(s)' in result.output

        result = runner.invoke(args=['seed-demo'])
        assert 'Seeded 0 book(s) and 0 customer(s)' in result.output

        assert session.query(Book).count() == 5
        assert session.query(Customer).count() == 5
        quijote = session.query(Book).filter_by(title='El Quijote').one()
        assert quijote.stock == 15

    def test_init_db(self, app, session):
        result = app.test_cli_runner().invoke(args=['init-db'])
        assert result.exit_code == 0
        assert 'created' in result.output
