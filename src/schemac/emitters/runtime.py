"""Server/browser runtime emitter.

Generates JavaScript data-access functions named ``verb + EntityName``:

- ``server/database-queries.js``: insert/create/get/find/update/kill/delete
  per persisted record
- ``server/kv-store.js``: set/get/delete/exists/updateTtl per cache record,
  plus store/load/remove/clear ``<Entity>Cache`` primitives for every persisted
  record referenced from a cache or storage model
- ``web/browser-storage.js``: one ``<Entity>Storage`` class per storage record
- ``server/sse-events.js``: broadcast/send helpers per push-event record
"""

from __future__ import annotations

from schemac.core.models import CompiledSchema, Domain, EntityIR, FieldRole, ReferenceOrigin
from schemac.emitters.base import GENERATED_NOTICE, EmitResult, SchemaEmitter

DB_QUERIES_PATH = "server/database-queries.js"
KV_STORE_PATH = "server/kv-store.js"
BROWSER_STORAGE_PATH = "web/browser-storage.js"
SSE_EVENTS_PATH = "server/sse-events.js"

DB_VERBS = (
    "insert",
    "create",
    "get{}sByHost",
    "find{}sByHost",
    "get{}ById",
    "find{}ById",
    "update",
    "kill",
    "delete",
)
KV_VERBS = ("set", "get", "delete", "exists", "updateTtl")
# Domains whose references to persisted records request cache primitives.
CACHE_DOMAINS = (Domain.KV, Domain.STORAGE)
CACHE_VERBS = ("store", "load", "remove", "clear")


def db_function_names(name: str) -> list[str]:
    return [v.format(name) if "{}" in v else f"{v}{name}" for v in DB_VERBS]


def kv_function_names(name: str) -> list[str]:
    return [f"{verb}{name}" for verb in KV_VERBS]


def cache_function_names(name: str) -> list[str]:
    return [f"{verb}{name}Cache" for verb in CACHE_VERBS]


def cache_targets(schema: CompiledSchema) -> list[EntityIR]:
    """Primary persisted records referenced from cache or storage models.

    Each gets typed store/load/remove/clear cache primitives, whether the
    reference is an import or a field type.
    """
    keys: list[str] = []
    for edge in schema.edges:
        source = schema.entities.get(edge.from_entity)
        target = schema.entities.get(edge.to_entity)
        if source is None or target is None:
            continue
        if source.domain not in CACHE_DOMAINS or target.domain != Domain.DB:
            continue
        if target.is_union or not target.is_primary:
            continue
        if edge.origin not in (ReferenceOrigin.IMPORT, ReferenceOrigin.FIELD_TYPE):
            continue
        if edge.to_entity not in keys:
            keys.append(edge.to_entity)
    return [schema.entities[k] for k in keys]


def _indent(text: str, spaces: int = 4) -> str:
    pad = " " * spaces
    return "\n".join(pad + line if line else line for line in text.splitlines())


def _export_block(names: list[str]) -> str:
    if not names:
        return "    return {};"
    listed = ",\n".join(f"        {n}" for n in names)
    return f"    return {{\n{listed}\n    }};"


class RuntimeEmitter(SchemaEmitter):
    """JavaScript runtime glue for the db, kv, storage and sse domains."""

    @property
    def name(self) -> str:
        return "runtime"

    @property
    def description(self) -> str:
        return "Database, KV, browser-storage and SSE runtime functions"

    def emit(self, schema: CompiledSchema) -> EmitResult:
        return EmitResult(
            files={
                DB_QUERIES_PATH: self.database_queries(schema),
                KV_STORE_PATH: self.kv_store(schema),
                BROWSER_STORAGE_PATH: self.browser_storage(schema),
                SSE_EVENTS_PATH: self.sse_events(schema),
            }
        )

    # -- database ---------------------------------------------------------

    def database_queries(self, schema: CompiledSchema) -> str:
        records = schema.records(Domain.DB, primary_only=True)
        functions = "\n\n".join(_indent(self.query_functions(e)) for e in records)
        exported = [n for e in records for n in db_function_names(e.name)]
        return (
            "/**\n"
            " * Auto-Generated Database Query Functions\n"
            " * Generated from database models\n"
            " *\n"
            f" * {GENERATED_NOTICE}\n"
            " *\n"
            " * Every query is scoped to a tenant.\n"
            " */\n\n"
            "// Factory function that takes a pool and returns bound query functions\n"
            "export default function createDbQueries(pool) {\n"
            f"{functions}\n\n"
            f"{_export_block(exported)}\n"
            "}\n"
        )

    def query_functions(self, entity: EntityIR) -> str:
        """The nine query functions of one persisted record."""
        cfg = self.config
        name = entity.name
        table = entity.table_name
        var = name.lower()
        tenant_field = entity.field_with_role(FieldRole.TENANT)
        tenant = tenant_field.canonical_name if tenant_field else cfg.tenant_column
        soft_field = entity.field_with_role(FieldRole.SOFT_DELETE)
        id_col = entity.id_field or "id"
        created = cfg.created_at_column
        updated_field = entity.field_with_role(FieldRole.UPDATED_AT)
        updated = updated_field.canonical_name if updated_field else cfg.updated_at_column

        insert_fields = [
            f.canonical_name
            for f in entity.fields
            if f.canonical_name != entity.id_field and f.canonical_name != tenant
        ]
        columns = ", ".join(insert_fields + [tenant])
        placeholders = ", ".join([f"${i + 2}" for i in range(len(insert_fields))] + ["$1"])
        values = ", ".join(["host"] + [f"{var}.{c}" for c in insert_fields])

        select_all = f"SELECT * FROM {table} WHERE {tenant} = $1 ORDER BY {created} DESC"
        select_by_id = f"SELECT * FROM {table} WHERE {id_col} = $1 AND {tenant} = $2"
        if soft_field is not None:
            deleted = soft_field.canonical_name
            select_all_live = (
                f"SELECT * FROM {table} WHERE {tenant} = $1 AND {deleted} IS NULL "
                f"ORDER BY {created} DESC"
            )
            select_by_id_live = f"{select_by_id} AND {deleted} IS NULL"
            kill_sql = (
                f"UPDATE {table} SET {deleted} = extract(epoch from now()) * 1000 "
                f"WHERE {id_col} = $1 AND {tenant} = $2 RETURNING *"
            )
            kill_doc = f"Soft delete {name} (sets {deleted})"
        else:
            select_all_live = select_all
            select_by_id_live = select_by_id
            kill_sql = f"DELETE FROM {table} WHERE {id_col} = $1 AND {tenant} = $2 RETURNING *"
            kill_doc = f"Delete {name} ({name} has no soft-delete column)"
        delete_sql = (
            f"DELETE FROM {table} WHERE {id_col} = $1 AND {tenant} = $2 RETURNING {id_col}"
        )

        return f"""// Auto-generated database functions for {name}

/**
 * Insert {name} with automatic tenant isolation
 */
async function insert{name}({var}, host) {{
    const result = await pool.query(
        'INSERT INTO {table} ({columns}) VALUES ({placeholders}) RETURNING *',
        [{values}]
    );
    return result.rows[0];
}}

/**
 * Create {name} (alias for insert)
 */
async function create{name}(data) {{
    const {{ host, ...rest }} = data;
    return insert{name}(rest, host);
}}

/**
 * Get all {name}s for a tenant (includes soft-deleted)
 */
async function get{name}sByHost(host) {{
    const result = await pool.query(
        '{select_all}',
        [host]
    );
    return result.rows;
}}

/**
 * Find all live {name}s for a tenant (excludes soft-deleted)
 */
async function find{name}sByHost(host) {{
    const result = await pool.query(
        '{select_all_live}',
        [host]
    );
    return result.rows;
}}

/**
 * Get {name} by ID with tenant isolation (includes soft-deleted)
 */
async function get{name}ById(id, host) {{
    const result = await pool.query(
        '{select_by_id}',
        [id, host]
    );
    return result.rows[0] || null;
}}

/**
 * Find {name} by ID with tenant isolation (excludes soft-deleted)
 */
async function find{name}ById(id, host) {{
    const result = await pool.query(
        '{select_by_id_live}',
        [id, host]
    );
    return result.rows[0] || null;
}}

/**
 * Update {name} with tenant isolation
 */
async function update{name}(id, updates, host) {{
    const updateFields = Object.keys(updates).filter(key => key !== '{id_col}' && key !== '{tenant}');
    const setClause = updateFields.map((field, i) => field + ' = $' + (i + 3)).join(', ');
    const values = updateFields.map(field => updates[field]);

    if (setClause === '') {{
        return get{name}ById(id, host);
    }}

    const sql = 'UPDATE {table} SET ' + setClause + ', {updated} = NOW() WHERE {id_col} = $1 AND {tenant} = $2 RETURNING *';
    const result = await pool.query(sql, [id, host, ...values]);
    return result.rows[0] || null;
}}

/**
 * {kill_doc}
 */
async function kill{name}(id, host) {{
    const result = await pool.query(
        '{kill_sql}',
        [id, host]
    );
    return result.rows[0] || null;
}}

/**
 * Hard delete {name} with tenant isolation
 */
async function delete{name}(id, host) {{
    const result = await pool.query(
        '{delete_sql}',
        [id, host]
    );
    return result.rows.length > 0;
}}"""

    # -- kv ---------------------------------------------------------------

    def kv_store(self, schema: CompiledSchema) -> str:
        records = schema.records(Domain.KV, primary_only=True)
        cached = cache_targets(schema)
        blocks = [_indent(self.kv_functions(e)) for e in records]
        blocks += [_indent(self.cache_functions(e)) for e in cached]
        exported = [n for e in records for n in kv_function_names(e.name)]
        exported += [n for e in cached for n in cache_function_names(e.name)]
        body = "\n\n".join(blocks)
        return (
            "/**\n"
            " * Auto-Generated KV Store Functions\n"
            " * Generated from cache models\n"
            " *\n"
            f" * {GENERATED_NOTICE}\n"
            " */\n\n"
            "// Factory function that takes a KV client and returns bound functions\n"
            "export default function createKvFunctions(kvClient) {\n"
            + (f"{body}\n\n" if body else "")
            + f"{_export_block(exported)}\n"
            "}\n"
        )

    def kv_functions(self, entity: EntityIR) -> str:
        """set/get/delete/exists/updateTtl for one cache record."""
        name = entity.name
        var = name.lower()
        ttl = self.config.default_kv_ttl
        key_expr = f"`${{host}}:{var}:${{key}}`"
        return f"""// Auto-generated KV store functions for {name}

/**
 * Set {name} in KV store with TTL and tenant isolation
 */
async function set{name}({var}, key, host) {{
    try {{
        const tenantKey = {key_expr};
        const ttl = {var}.ttl || {ttl};
        await kvClient.setex(tenantKey, ttl, JSON.stringify({var}));
        return true;
    }} catch (error) {{
        console.error('Error setting {name}:', error);
        return false;
    }}
}}

/**
 * Get {name} from KV store with tenant isolation
 */
async function get{name}(key, host) {{
    try {{
        const data = await kvClient.get({key_expr});
        return data ? JSON.parse(data) : null;
    }} catch (error) {{
        console.error('Error getting {name}:', error);
        return null;
    }}
}}

/**
 * Delete {name} from KV store with tenant isolation
 */
async function delete{name}(key, host) {{
    try {{
        const result = await kvClient.del({key_expr});
        return result === 1;
    }} catch (error) {{
        console.error('Error deleting {name}:', error);
        return false;
    }}
}}

/**
 * Check if {name} exists in KV store with tenant isolation
 */
async function exists{name}(key, host) {{
    try {{
        const result = await kvClient.exists({key_expr});
        return result === 1;
    }} catch (error) {{
        console.error('Error checking {name} exists:', error);
        return false;
    }}
}}

/**
 * Update TTL for {name} in KV store
 */
async function updateTtl{name}(key, ttl, host) {{
    try {{
        const result = await kvClient.expire({key_expr}, ttl);
        return result === 1;
    }} catch (error) {{
        console.error('Error updating {name} TTL:', error);
        return false;
    }}
}}"""

    def cache_functions(self, entity: EntityIR) -> str:
        """Typed cache primitives for a persisted record referenced from a cache model."""
        name = entity.name
        var = name[:1].lower() + name[1:]
        id_field = entity.id_field or "id"
        prefix = f"cache:{entity.table_name}"
        ttl = self.config.default_kv_ttl
        return f"""// Auto-generated cache primitives for {name}

/**
 * Store {name} in the cache, keyed by {id_field}
 */
async function store{name}Cache({var}, host, ttl = {ttl}) {{
    try {{
        const tenantKey = `${{host}}:{prefix}:${{{var}.{id_field}}}`;
        await kvClient.setex(tenantKey, ttl, JSON.stringify({var}));
        return true;
    }} catch (error) {{
        console.error('Error caching {name}:', error);
        return false;
    }}
}}

/**
 * Load a cached {name} by id
 */
async function load{name}Cache(id, host) {{
    try {{
        const data = await kvClient.get(`${{host}}:{prefix}:${{id}}`);
        return data ? JSON.parse(data) : null;
    }} catch (error) {{
        console.error('Error loading cached {name}:', error);
        return null;
    }}
}}

/**
 * Remove a cached {name} by id
 */
async function remove{name}Cache(id, host) {{
    try {{
        const result = await kvClient.del(`${{host}}:{prefix}:${{id}}`);
        return result === 1;
    }} catch (error) {{
        console.error('Error removing cached {name}:', error);
        return false;
    }}
}}

/**
 * Clear every cached {name} of a tenant
 */
async function clear{name}Cache(host) {{
    try {{
        const keys = await kvClient.keys(`${{host}}:{prefix}:*`);
        for (const key of keys) {{
            await kvClient.del(key);
        }}
        return keys.length;
    }} catch (error) {{
        console.error('Error clearing cached {name}:', error);
        return 0;
    }}
}}"""

    # -- browser storage --------------------------------------------------

    def browser_storage(self, schema: CompiledSchema) -> str:
        records = schema.records(Domain.STORAGE, primary_only=True)
        classes = "\n\n".join(self.storage_class(e) for e in records)
        exported = ", ".join(f"{e.name}Storage" for e in records)
        return (
            "/**\n"
            " * Auto-Generated Browser Storage\n"
            " * Generated from storage models\n"
            " *\n"
            f" * {GENERATED_NOTICE}\n"
            " */\n\n"
            + (f"{classes}\n\n" if classes else "")
            + f"export {{ {exported} }};\n"
        )

    def storage_class(self, entity: EntityIR) -> str:
        name = entity.name
        var = name.lower()
        return f"""class {name}Storage {{
    static storageKey = '{entity.table_name}';

    static save({var}) {{
        try {{
            localStorage.setItem(this.storageKey, JSON.stringify({var}));
            if (typeof app !== 'undefined' && app.ports && app.ports.{var}Changed) {{
                app.ports.{var}Changed.send({var});
            }}
            return true;
        }} catch (error) {{
            console.error('Error saving {name}:', error);
            return false;
        }}
    }}

    static load() {{
        try {{
            const data = localStorage.getItem(this.storageKey);
            return data ? JSON.parse(data) : null;
        }} catch (error) {{
            console.error('Error loading {name}:', error);
            return null;
        }}
    }}

    static clear() {{
        try {{
            localStorage.removeItem(this.storageKey);
            if (typeof app !== 'undefined' && app.ports && app.ports.{var}Changed) {{
                app.ports.{var}Changed.send(null);
            }}
            return true;
        }} catch (error) {{
            console.error('Error clearing {name}:', error);
            return false;
        }}
    }}

    static exists() {{
        return localStorage.getItem(this.storageKey) !== null;
    }}

    static update(updates) {{
        const current = this.load();
        if (current) {{
            return this.save({{ ...current, ...updates }});
        }}
        return false;
    }}
}}"""

    # -- sse --------------------------------------------------------------

    def sse_events(self, schema: CompiledSchema) -> str:
        records = schema.records(Domain.SSE, primary_only=True)
        names = ",\n".join(f"    {e.name}: '{e.table_name}'" for e in records)
        helpers = "\n\n".join(self.sse_helpers(e) for e in records)
        return (
            "/**\n"
            " * Auto-Generated Server-Sent Event Helpers\n"
            " * Generated from push-event models\n"
            " *\n"
            f" * {GENERATED_NOTICE}\n"
            " */\n\n"
            "export const SSE_EVENT_NAMES = {\n"
            + (f"{names}\n" if names else "")
            + "};\n"
            + (f"\n{helpers}\n" if helpers else "")
        )

    def sse_helpers(self, entity: EntityIR) -> str:
        name = entity.name
        event = entity.table_name
        return f"""/**
 * Broadcast {name} to every client of a tenant
 */
export function broadcast{name}(sseManager, host, payload) {{
    return sseManager.broadcast(host, '{event}', payload);
}}

/**
 * Send {name} to a single connection
 */
export function send{name}(connection, payload) {{
    connection.write(`event: {event}\\ndata: ${{JSON.stringify(payload)}}\\n\\n`);
}}"""
