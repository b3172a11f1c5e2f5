"""Schema v1 - Initial marketplace schema.

This version includes tables for:
- Public listings with auction fields
- Private listings
- Listing history (order in which asset ids were first listed)
- Creator registrations
- Append-only domain event log
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'market_items',
            'columns': [
                {'name': 'asset_id', 'type': 'NUMERIC(78, 0)', 'primary_key': True},
                {'name': 'asset_collection', 'type': 'TEXT', 'nullable': False},
                {'name': 'price', 'type': 'NUMERIC(78, 0)', 'nullable': False},
                {'name': 'currency', 'type': 'TEXT', 'nullable': False},
                {'name': 'is_auction', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'offeror', 'type': 'TEXT', 'nullable': False},
                {'name': 'owner', 'type': 'TEXT'},
                {'name': 'minimum_offer', 'type': 'NUMERIC(78, 0)', 'nullable': False, 'default': '0'},
                {'name': 'auction_deadline', 'type': 'INT8', 'nullable': False, 'default': '0'},
                {'name': 'current_bidder', 'type': 'TEXT'},
                {'name': 'locked_bid', 'type': 'NUMERIC(78, 0)', 'nullable': False, 'default': '0'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_market_items_offeror', 'columns': ['offeror']},
                {'name': 'idx_market_items_active', 'columns': ['asset_id'], 'where': 'owner IS NULL'}
            ]
        },
        {
            'name': 'private_market_items',
            'columns': [
                {'name': 'asset_id', 'type': 'NUMERIC(78, 0)', 'primary_key': True},
                {'name': 'asset_collection', 'type': 'TEXT', 'nullable': False},
                {'name': 'price', 'type': 'NUMERIC(78, 0)', 'nullable': False},
                {'name': 'currency', 'type': 'TEXT', 'nullable': False},
                {'name': 'offeror', 'type': 'TEXT', 'nullable': False},
                {'name': 'owner', 'type': 'TEXT'},
                {'name': 'invited_buyer', 'type': 'TEXT', 'nullable': False},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_private_items_invited', 'columns': ['invited_buyer']}
            ]
        },
        {
            'name': 'listing_history',
            'columns': [
                {'name': 'kind', 'type': 'TEXT'},
                {'name': 'asset_id', 'type': 'NUMERIC(78, 0)'},
                {'name': 'seq', 'type': 'INT8', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['kind', 'asset_id'],
            'indexes': [
                {'name': 'idx_listing_history_seq', 'columns': ['kind', 'seq'], 'unique': True}
            ]
        },
        {
            'name': 'registrations',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'seq', 'type': 'INT8', 'nullable': False},
                {'name': 'owner', 'type': 'TEXT', 'nullable': False},
                {'name': 'creator', 'type': 'TEXT', 'nullable': False},
                {'name': 'price', 'type': 'NUMERIC(78, 0)', 'nullable': False},
                {'name': 'currency', 'type': 'TEXT', 'nullable': False},
                {'name': 'expiry', 'type': 'INT8', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_registrations_owner', 'columns': ['owner', 'expiry']},
                {'name': 'idx_registrations_seq', 'columns': ['seq'], 'unique': True}
            ]
        },
        {
            'name': 'market_events',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'seq', 'type': 'INT8', 'nullable': False},
                {'name': 'name', 'type': 'TEXT', 'nullable': False},
                {'name': 'args', 'type': 'JSONB', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_market_events_seq', 'columns': ['seq'], 'unique': True},
                {'name': 'idx_market_events_name', 'columns': ['name']}
            ]
        }
    ]
}
