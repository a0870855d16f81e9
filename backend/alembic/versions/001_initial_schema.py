"""Initial schema: orgs, employees, profiles, projects, files, tasks,
work papers, notifications, timesheets, audit log

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    # ── Organisations ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS orgs (
          org_id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          name VARCHAR(200) NOT NULL,
          org_code VARCHAR(50) NOT NULL UNIQUE,
          description TEXT,
          is_active BOOLEAN NOT NULL DEFAULT TRUE,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    # ── Employees ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS employees (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID NOT NULL,
          name VARCHAR(200) NOT NULL,
          email VARCHAR(255),
          phone VARCHAR(50),
          role VARCHAR(50) NOT NULL DEFAULT 'assistant_1',
          status VARCHAR(20) NOT NULL DEFAULT 'active',
          company VARCHAR(200),
          department VARCHAR(100),
          position VARCHAR(200),
          hire_date DATE,
          termination_date DATE,
          notes TEXT,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          CONSTRAINT uq_employees_org_email UNIQUE (org_id, email)
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_employees_org_id ON employees(org_id);")

    # ── Profiles (auth-linked users) ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID REFERENCES orgs(org_id) ON DELETE SET NULL,
          email VARCHAR(255),
          full_name VARCHAR(200),
          role VARCHAR(50) NOT NULL DEFAULT 'assistant_1',
          is_active BOOLEAN NOT NULL DEFAULT TRUE,
          employee_id UUID UNIQUE REFERENCES employees(id) ON DELETE SET NULL,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_profiles_org_id ON profiles(org_id);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_profiles_email ON profiles(email);")

    # ── Projects ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS projects (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID NOT NULL,
          name VARCHAR(500) NOT NULL,
          project_type VARCHAR(50) NOT NULL DEFAULT 'other',
          status VARCHAR(30) NOT NULL DEFAULT 'new',
          company_name VARCHAR(200),
          completion_percent INTEGER NOT NULL DEFAULT 0
            CHECK (completion_percent >= 0 AND completion_percent <= 100),
          client_name VARCHAR(500),
          client_website VARCHAR(500),
          client_activity TEXT,
          client_city VARCHAR(200),
          contract_number VARCHAR(100),
          contract_date DATE,
          contract_subject TEXT,
          service_start_date DATE,
          service_end_date DATE,
          amount_without_vat NUMERIC(18,2) NOT NULL DEFAULT 0,
          vat_rate INTEGER NOT NULL DEFAULT 12,
          currency VARCHAR(3) NOT NULL DEFAULT 'KZT',
          is_multi_year BOOLEAN NOT NULL DEFAULT FALSE,
          yearly_amounts JSONB NOT NULL DEFAULT '[]'::jsonb,
          amendments JSONB NOT NULL DEFAULT '[]'::jsonb,
          team JSONB NOT NULL DEFAULT '[]'::jsonb,
          contractors JSONB NOT NULL DEFAULT '[]'::jsonb,
          pre_expense_percent NUMERIC(5,2) NOT NULL DEFAULT 30,
          stages JSONB NOT NULL DEFAULT '[]'::jsonb,
          additional_services JSONB NOT NULL DEFAULT '[]'::jsonb,
          financial_visibility JSONB,
          finances JSONB,
          bonuses_computed_at TIMESTAMPTZ,
          created_by UUID,
          approved_by UUID,
          approved_at TIMESTAMPTZ,
          completed_at TIMESTAMPTZ,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_projects_org_id ON projects(org_id);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_projects_status ON projects(status);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_projects_contract_number ON projects(contract_number);")

    # ── Project files ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS project_files (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID NOT NULL,
          project_id UUID NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
          file_name VARCHAR(500) NOT NULL,
          file_type VARCHAR(200) NOT NULL,
          file_size BIGINT NOT NULL,
          storage_path VARCHAR(1000) NOT NULL,
          category VARCHAR(30) NOT NULL DEFAULT 'other',
          uploaded_by UUID,
          uploaded_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_project_files_project_id ON project_files(project_id);")

    # ── Tasks ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS tasks (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID NOT NULL,
          project_id UUID NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
          title VARCHAR(500) NOT NULL,
          description TEXT,
          status VARCHAR(20) NOT NULL DEFAULT 'backlog',
          priority VARCHAR(10) NOT NULL DEFAULT 'med',
          assignees JSONB NOT NULL DEFAULT '[]'::jsonb,
          reporter_id UUID,
          checklist JSONB NOT NULL DEFAULT '[]'::jsonb,
          labels JSONB NOT NULL DEFAULT '[]'::jsonb,
          due_at TIMESTAMPTZ,
          estimate_hours NUMERIC(6,1),
          spent_hours NUMERIC(6,1) NOT NULL DEFAULT 0,
          completed_at TIMESTAMPTZ,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_tasks_project_id ON tasks(project_id);")

    # ── Work papers ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS work_papers (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID NOT NULL,
          project_id UUID NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
          template_id VARCHAR(100),
          code VARCHAR(50) NOT NULL,
          name VARCHAR(500) NOT NULL,
          status VARCHAR(20) NOT NULL DEFAULT 'not_started',
          data JSONB NOT NULL DEFAULT '{}'::jsonb,
          review_history JSONB NOT NULL DEFAULT '[]'::jsonb,
          assigned_to VARCHAR(100),
          reviewer_id VARCHAR(100),
          started_at TIMESTAMPTZ,
          completed_at TIMESTAMPTZ,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_work_papers_project_id ON work_papers(project_id);")

    # ── Notifications ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID NOT NULL,
          user_id UUID NOT NULL,
          title VARCHAR(300) NOT NULL,
          message TEXT NOT NULL DEFAULT '',
          type VARCHAR(20) NOT NULL DEFAULT 'info',
          is_read BOOLEAN NOT NULL DEFAULT FALSE,
          action_url VARCHAR(1000),
          created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_notifications_user_read ON notifications(user_id, is_read);")

    # ── Timesheet entries ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS timesheet_entries (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID NOT NULL,
          user_id UUID NOT NULL,
          project_id UUID REFERENCES projects(id) ON DELETE SET NULL,
          date DATE NOT NULL,
          hours NUMERIC(4,1) NOT NULL CHECK (hours > 0 AND hours <= 24),
          description TEXT DEFAULT '',
          status VARCHAR(20) NOT NULL DEFAULT 'draft',
          submitted_at TIMESTAMPTZ,
          approved_by UUID,
          approved_at TIMESTAMPTZ,
          approval_comment TEXT DEFAULT '',
          created_at TIMESTAMPTZ DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_timesheet_entries_user_day ON timesheet_entries(org_id, user_id, date);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_timesheet_entries_project_id ON timesheet_entries(project_id);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_ts_org_status ON timesheet_entries(org_id, status);")

    # ── Audit log ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          org_id UUID NOT NULL,
          user_id UUID,
          action VARCHAR(100) NOT NULL,
          resource_type VARCHAR(100) NOT NULL,
          resource_id VARCHAR(255),
          details JSONB,
          created_at TIMESTAMPTZ DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_log_org_id ON audit_log(org_id);")


def downgrade():
    for table in ["audit_log", "timesheet_entries", "notifications", "work_papers", "tasks",
                  "project_files", "projects", "profiles", "employees", "orgs"]:
        op.execute(f"DROP TABLE IF EXISTS {table};")
