"""
Flask CLI commands for database setup and administrator management.

Commands:
- flask init-db: Create the tables (--drop recreates them)
- flask grant-admin: Give a user id administrator access
- flask revoke-admin: Remove administrator access
- flask seed-demo: Load the sample books and customers
"""

import click
from decimal import Decimal
from app.database import db_session, create_schema, drop_schema
from app.exceptions import BookstoreError
from app.models import Book, Customer
from app.services import auth_service

DEMO_BOOKS = [
    {'title': 'El Quijote', 'author': 'Miguel de Cervantes', 'isbn': '978-84-376-0494-7', 'genre': 'Clásico',
     'price': Decimal('25.99'), 'stock': 15, 'description': 'La obra maestra de la literatura española'},
    {'title': 'Cien años de soledad', 'author': 'Gabriel García Márquez', 'isbn': '978-84-376-0495-4',
     'genre': 'Realismo mágico', 'price': Decimal('22.50'), 'stock': 8, 'description': 'Una saga familiar en Macondo'},
    {'title': '1984', 'author': 'George Orwell', 'isbn': '978-84-376-0496-1', 'genre': 'Distopía',
     'price': Decimal('18.75'), 'stock': 12, 'description': 'Una visión del futuro totalitario'},
    {'title': 'El principito', 'author': 'Antoine de Saint-Exupéry', 'isbn': '978-84-376-0497-8', 'genre': 'Infantil',
     'price': Decimal('15.99'), 'stock': 20, 'description': 'Un cuento filosófico para todas las edades'},
    {'title': 'Rayuela', 'author': 'Julio Cortázar', 'isbn': '978-84-376-0498-5', 'genre': 'Literatura contemporánea',
     'price': Decimal('28.00'), 'stock': 6, 'description': 'Una novela experimental argentina'},
]

DEMO_CUSTOMERS = [
    {'name': 'Juan Pérez', 'email': 'juan.perez@email.com', 'phone': '+34 600 123 456', 'address': 'Calle Mayor 123, Madrid'},
    {'name': 'María García', 'email': 'maria.garcia@email.com', 'phone': '+34 600 234 567', 'address': 'Avenida de la Paz 45, Barcelona'},
    {'name': 'Carlos López', 'email': 'carlos.lopez@email.com', 'phone': '+34 600 345 678', 'address': 'Plaza del Sol 12, Valencia'},
    {'name': 'Ana Martínez', 'email': 'ana.martinez@email.com', 'phone': '+34 600 456 789', 'address': 'Calle de la Luna 78, Sevilla'},
    {'name': 'Luis Rodríguez', 'email': 'luis.rodriguez@email.com', 'phone': '+34 600 567 890', 'address': 'Paseo de Gracia 234, Barcelona'},
]


def seed_demo_data(session):
    """
    Insert the sample catalog and customers, skipping rows already present.

    Returns:
        (books_added, customers_added)
    """
    books_added = customers_added = 0

    for data in DEMO_BOOKS:
        if not session.query(Book).filter_by(isbn=data['isbn']).first():
            session.add(Book(**data))
            books_added += 1

    for data in DEMO_CUSTOMERS:
        if not session.query(Customer).filter_by(email=data['email']).first():
            session.add(Customer(**data))
            customers_added += 1

    session.commit()
    return books_added, customers_added


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first')
    def init_db_command(drop):
        """Create the database tables."""
        if drop:
            drop_schema()
            click.echo(click.style('Dropped existing tables', fg='yellow'))
        create_schema()
        click.echo(click.style('Database tables created', fg='green', bold=True))

    @app.cli.command('grant-admin')
    @click.option('--user-id', required=True, help='User id issued by the auth provider')
    def grant_admin(user_id):
        """Give a user administrator access."""
        try:
            created = auth_service.grant_admin(db_session, user_id)
        except BookstoreError as e:
            raise click.ClickException(e.message)

        if created:
            click.echo(click.style(f'Administrator granted: {user_id}', fg='green', bold=True))
        else:
            click.echo(click.style(f'{user_id} is already an administrator', fg='yellow'))

    @app.cli.command('revoke-admin')
    @click.option('--user-id', required=True, help='User id issued by the auth provider')
    def revoke_admin(user_id):
        """Remove administrator access."""
        if auth_service.revoke_admin(db_session, user_id):
            click.echo(click.style(f'Administrator revoked: {user_id}', fg='green'))
        else:
            click.echo(click.style(f'{user_id} was not an administrator', fg='yellow'))

    @app.cli.command('seed-demo')
    def seed_demo():
        """Load the sample books and customers."""
        books_added, customers_added = seed_demo_data(db_session)
        click.echo(click.style(
            f'Seeded {books_added} book(s) and {customers_added} customer(s)', fg='green'
        ))
