"""initial_qresolve_schema

- profiles, organizations, organization_memberships, subscriptions, assets, issues
- Enum CHECK constraints and tenant indexes
- RLS on all tables: members see their organization's rows, anon may read
  assets and file open issues (public QR reporting)

Revision ID: 4c1e9a7b2d05
Revises:
Create Date: 2026-10-12 10:40:12.118202

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e9a7b2d05'
down_revision = None
branch_labels = None
depends_on = None

TABLES = (
    "profiles",
    "organizations",
    "organization_memberships",
    "subscriptions",
    "assets",
    "issues",
)

# Asset columns anonymous reporters may read (QR report page)
ANON_ASSET_COLUMNS = ("id", "name", "location", "org_id", "serial_number")


def _uuid(name: str, *args, **kwargs) -> sa.Column:
    return sa.Column(name, sa.UUID(as_uuid=False), *args, **kwargs)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    # ====================================================================
    # Part 1: Tables
    # ====================================================================
    op.create_table(
        "profiles",
        _uuid("id", primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _uuid("user_id", sa.ForeignKey("auth.users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("full_name", sa.TEXT(), nullable=True),
        sa.Column("avatar_url", sa.TEXT(), nullable=True),
        sa.Column("email", sa.TEXT(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "organizations",
        _uuid("id", primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.TEXT(), nullable=False),
        _uuid("owner_id", sa.ForeignKey("auth.users.id"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("length(btrim(name)) > 0", name="ck_organizations_name_not_blank"),
    )
    op.create_index("idx_organizations_owner", "organizations", ["owner_id"])

    op.create_table(
        "organization_memberships",
        _uuid("id", primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _uuid("org_id", sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        _uuid("user_id", sa.ForeignKey("auth.users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.TEXT(), nullable=False, server_default="member"),
        *_timestamps(),
        sa.CheckConstraint("role IN ('owner', 'admin', 'member')", name="ck_memberships_role"),
        sa.UniqueConstraint("user_id", name="uq_memberships_user"),
    )
    op.create_index("idx_memberships_org", "organization_memberships", ["org_id"])

    op.create_table(
        "subscriptions",
        _uuid("id", primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _uuid("org_id", sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.TEXT(), nullable=False, server_default="trialing"),
        sa.Column("current_asset_count", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("stripe_subscription_id", sa.TEXT(), nullable=True),
        sa.Column("stripe_customer_id", sa.TEXT(), nullable=True),
        sa.Column("stripe_base_price", sa.NUMERIC(10, 2), nullable=True),
        sa.Column("current_period_start", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('active', 'past_due', 'canceled', 'trialing')",
            name="ck_subscriptions_status",
        ),
        sa.UniqueConstraint("org_id", name="uq_subscriptions_org"),
    )

    op.create_table(
        "assets",
        _uuid("id", primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _uuid("org_id", sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.TEXT(), nullable=False),
        sa.Column("description", sa.TEXT(), nullable=True),
        sa.Column("type", sa.TEXT(), nullable=True),
        sa.Column("location", sa.TEXT(), nullable=True),
        sa.Column("status", sa.TEXT(), nullable=False, server_default="active"),
        sa.Column("qr_code", sa.TEXT(), nullable=True),
        sa.Column("serial_number", sa.TEXT(), nullable=True),
        sa.Column("purchase_date", sa.DATE(), nullable=True),
        sa.Column("purchase_cost", sa.NUMERIC(12, 2), nullable=True),
        _uuid("created_by", sa.ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'maintenance', 'retired')",
            name="ck_assets_status",
        ),
    )
    op.create_index("idx_assets_org_created", "assets", ["org_id", "created_at"])

    op.create_table(
        "issues",
        _uuid("id", primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _uuid("org_id", sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        _uuid("asset_id", sa.ForeignKey("assets.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.TEXT(), nullable=False),
        sa.Column("description", sa.TEXT(), nullable=True),
        sa.Column("status", sa.TEXT(), nullable=False, server_default="open"),
        sa.Column("priority", sa.TEXT(), nullable=False, server_default="medium"),
        _uuid("reported_by", nullable=True),
        _uuid("assigned_to", sa.ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("resolved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('open', 'in_progress', 'resolved', 'closed')",
            name="ck_issues_status",
        ),
        sa.CheckConstraint(
            "priority IN ('low', 'medium', 'high', 'critical')",
            name="ck_issues_priority",
        ),
    )
    op.create_index("idx_issues_org_created", "issues", ["org_id", "created_at"])
    op.create_index("idx_issues_org_status", "issues", ["org_id", "status"])
    op.create_index("idx_issues_asset", "issues", ["asset_id"])

    # ====================================================================
    # Part 2: Row level security
    # ====================================================================
    for table in TABLES:
        op.execute(f"ALTER TABLE public.{table} ENABLE ROW LEVEL SECURITY;")

    # Membership lookup without recursing into organization_memberships RLS
    op.execute(
        """
        CREATE OR REPLACE FUNCTION public.user_org_ids()
        RETURNS SETOF uuid
        LANGUAGE sql STABLE SECURITY DEFINER SET search_path = public
        AS $$ SELECT org_id FROM public.organization_memberships WHERE user_id = auth.uid() $$;
        """
    )

    op.execute(
        "CREATE POLICY profiles_self ON public.profiles FOR ALL TO authenticated "
        "USING (user_id = auth.uid()) WITH CHECK (user_id = auth.uid());"
    )

    op.execute(
        "CREATE POLICY organizations_member_select ON public.organizations FOR SELECT TO authenticated "
        "USING (id IN (SELECT public.user_org_ids()) OR owner_id = auth.uid());"
    )
    op.execute(
        "CREATE POLICY organizations_owner_insert ON public.organizations FOR INSERT TO authenticated "
        "WITH CHECK (owner_id = auth.uid());"
    )
    op.execute(
        "CREATE POLICY organizations_owner_write ON public.organizations FOR UPDATE TO authenticated "
        "USING (id IN (SELECT org_id FROM public.organization_memberships "
        "WHERE user_id = auth.uid() AND role IN ('owner', 'admin')));"
    )
    op.execute(
        "CREATE POLICY organizations_owner_delete ON public.organizations FOR DELETE TO authenticated "
        "USING (owner_id = auth.uid());"
    )

    op.execute(
        "CREATE POLICY memberships_self ON public.organization_memberships FOR ALL TO authenticated "
        "USING (user_id = auth.uid()) WITH CHECK (user_id = auth.uid());"
    )

    op.execute(
        "CREATE POLICY subscriptions_member ON public.subscriptions FOR ALL TO authenticated "
        "USING (org_id IN (SELECT public.user_org_ids())) "
        "WITH CHECK (org_id IN (SELECT public.user_org_ids()));"
    )

    op.execute(
        "CREATE POLICY assets_member ON public.assets FOR ALL TO authenticated "
        "USING (org_id IN (SELECT public.user_org_ids())) "
        "WITH CHECK (org_id IN (SELECT public.user_org_ids()));"
    )
    op.execute("CREATE POLICY assets_public_select ON public.assets FOR SELECT TO anon USING (true);")
    # Policy admits every row; the column grant limits anon to the report projection
    op.execute("REVOKE SELECT ON public.assets FROM anon;")
    op.execute(f"GRANT SELECT ({', '.join(ANON_ASSET_COLUMNS)}) ON public.assets TO anon;")

    op.execute(
        "CREATE POLICY issues_member ON public.issues FOR ALL TO authenticated "
        "USING (org_id IN (SELECT public.user_org_ids())) "
        "WITH CHECK (org_id IN (SELECT public.user_org_ids()));"
    )
    op.execute(
        "CREATE POLICY issues_public_insert ON public.issues FOR INSERT TO anon "
        "WITH CHECK (status = 'open' AND asset_id IS NOT NULL "
        "AND org_id = (SELECT a.org_id FROM public.assets a WHERE a.id = asset_id));"
    )

    # Realtime feed for the live dashboard
    op.execute("ALTER PUBLICATION supabase_realtime ADD TABLE public.issues;")


def downgrade() -> None:
    op.execute("ALTER PUBLICATION supabase_realtime DROP TABLE public.issues;")
    op.drop_table("issues")
    op.drop_table("assets")
    op.drop_table("subscriptions")
    op.drop_table("organization_memberships")
    op.drop_table("organizations")
    op.drop_table("profiles")
    op.execute("DROP FUNCTION IF EXISTS public.user_org_ids();")
