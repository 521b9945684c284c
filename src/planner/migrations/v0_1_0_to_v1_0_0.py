from planner.migration import Migration, TableDocument

_META_FIELDS = ('id', 'created_at', 'updated_at')

class KeyedRecordsMigration(Migration):
    """
    0.1.0 stored ``records`` as a list of flat records. 1.0.0 keys records by
    id and moves id and timestamps into a nested ``meta`` block.
    """
    FROM_VERSION = '0.1.0'
    VERSION = '1.0.0'

    def upgrade(self, data: TableDocument) -> TableDocument:
        records = {}
        for record in data.get('records') or []:
            record = dict(record)
            meta = {field: record.pop(field) for field in _META_FIELDS}
            records[meta['id']] = {'meta': meta, **record}
        return {**data, 'schema_version': self.VERSION, 'records': records}

    def downgrade(self, data: TableDocument) -> TableDocument:
        records = []
        for record in (data.get('records') or {}).values():
            record = dict(record)
            meta = record.pop('meta')
            records.append({**{field: meta[field] for field in _META_FIELDS}, **record})
        return {**data, 'schema_version': self.FROM_VERSION, 'records': records}
