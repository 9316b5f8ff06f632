from sqlalchemy import inspect, text

from bundle_discounts.db import engine

TABLES = ("bundles", "cart_coupons", "bundle_evaluation_logs")


def main():
    existing = set(inspect(engine).get_table_names())
    with engine.connect() as conn:
        for table in TABLES:
            exists = table in existing
            print(f'{table}_table_exists:', exists)
            if exists:
                cnt = conn.execute(text(f'SELECT COUNT(*) FROM {table}')).scalar_one()
                print(f'{table}_row_count:', cnt)
        if 'cart_coupons' in existing:
            rows = conn.execute(text('SELECT status, COUNT(*) FROM cart_coupons GROUP BY status ORDER BY status'))
            for status, cnt in rows:
                print(f'cart_coupons[{status}]:', cnt)

if __name__ == '__main__':
    main()
