"""
Full Cycle Script for the Claim Workflow Engine

Walks one claim through the whole approval flow against a running server:
1. Lecturer creates and submits a claim
2. Coordinator approves it
3. Manager gives final approval
4. HR processes the payment
5. The audit trail and stats are printed

Run with: python full_cycle.py

Prerequisites:
- Server running on http://localhost:8000 (uvicorn claimflow.main:app --port 8000)
"""
import os
from typing import Optional

import requests

# Configuration
API_URL = os.getenv("CLAIMFLOW_API_URL", "http://localhost:8000")
LECTURER_ID = 7
COORDINATOR_ID = 21
MANAGER_ID = 31
HR_ID = 41


# Colors for terminal output
class Colors:
    GREEN = '\033[92m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    BOLD = '\033[1m'
    END = '\033[0m'


def print_step(step_num: int, message: str):
    print(f"\n{Colors.BOLD}{Colors.BLUE}[Step {step_num}]{Colors.END} {message}")


def print_success(message: str):
    print(f"  {Colors.GREEN}✓ {message}{Colors.END}")


def print_error(message: str):
    print(f"  {Colors.RED}✗ {message}{Colors.END}")


def print_info(message: str):
    print(f"  → {message}")


def check_health() -> bool:
    print_step(0, "Checking API Connection")
    try:
        response = requests.get(f"{API_URL}/health", timeout=5)
    except requests.exceptions.ConnectionError:
        print_error("Cannot connect to API. Is the server running?")
        print_info("Expected: uvicorn claimflow.main:app --reload --port 8000")
        return False

    if response.status_code != 200:
        print_error(f"API returned status {response.status_code}")
        return False
    print_success("API is healthy and responding")
    return True


def create_claim() -> Optional[int]:
    """Step 1: Lecturer submits 38.5 hours at 250.00."""
    print_step(1, "Creating Claim (Lecturer)")

    claim_data = {
        "lecturer_id": LECTURER_ID,
        "claim_month": "2026-09-01",
        "total_hours": "38.5",
        "hourly_rate": "250.00",
        "notes": "September contact hours",
        "items": [
            {
                "work_date": "2026-09-14",
                "hours_worked": "6",
                "module": "PROG6212",
                "description": "Lectures and practical session",
            },
        ],
    }
    response = requests.post(f"{API_URL}/claims/", json=claim_data, timeout=10)
    if response.status_code != 201:
        print_error(f"Failed to create claim: {response.text}")
        return None

    claim = response.json()["claim"]
    print_success(f"Claim created with ID: {claim['claim_id']}")
    print_info(f"Status: {claim['status']}")
    print_info(f"Amount: {claim['amount']}")
    return claim["claim_id"]


def transition(step_num: int, claim_id: int, label: str, body: dict) -> bool:
    print_step(step_num, label)
    response = requests.post(f"{API_URL}/claims/{claim_id}/transitions", json=body, timeout=10)
    if response.status_code != 200:
        print_error(f"Transition refused ({response.status_code}): {response.text}")
        return False

    result = response.json()
    print_success(result["message"])
    print_info(f"{result['previous_status']} -> {result['new_status']}")
    return True


def show_audit_trail(step_num: int, claim_id: int):
    print_step(step_num, "Approval Audit Trail")
    response = requests.get(f"{API_URL}/claims/{claim_id}/approvals", timeout=10)
    if response.status_code != 200:
        print_error(f"Failed to get approvals: {response.text}")
        return

    history = response.json()
    print_info(f"Current status: {history['current_status']}")
    for record in history["approvals"]:
        print_info(
            f"#{record['approval_id']} {record['approver_role']} {record['approver_id']}: "
            f"{record['from_status']} -> {record['to_status']} ({record['outcome']})"
        )


def show_stats(step_num: int):
    print_step(step_num, "Workflow Summary")
    response = requests.get(f"{API_URL}/claims/stats", timeout=10)
    if response.status_code != 200:
        print_error(f"Failed to get stats: {response.text}")
        return

    stats = response.json()
    print_info(f"Total Claims: {stats['total_claims']}")
    print_info(f"Pending: {stats['pending_by_stage']}")
    print_info(f"Paid Amount: {stats['paid_amount']}")


def run_full_cycle():
    print(f"\n{'='*60}")
    print(f"{Colors.BOLD}  FULL CYCLE - Lecturer Claim Workflow{Colors.END}")
    print(f"{'='*60}")
    print(f"\nAPI URL: {API_URL}")

    if not check_health():
        return

    claim_id = create_claim()
    if not claim_id:
        return

    steps = [
        ("Coordinator Approval", {
            "action": "Approve", "actor_id": COORDINATOR_ID, "actor_role": "Coordinator",
            "expected_status": "Submitted", "notes": "Hours verified against timetable",
        }),
        ("Manager Final Approval", {
            "action": "Approve", "actor_id": MANAGER_ID, "actor_role": "Manager",
            "expected_status": "WithManager",
        }),
        ("HR Payment", {
            "action": "ProcessPayment", "actor_id": HR_ID, "actor_role": "HR",
            "expected_status": "Approved",
        }),
    ]
    for step_num, (label, body) in enumerate(steps, start=2):
        if not transition(step_num, claim_id, label, body):
            return

    show_audit_trail(5, claim_id)
    show_stats(6)

    print(f"\n{'='*60}")
    print(f"{Colors.BOLD}{Colors.GREEN}  ✓ FULL CYCLE COMPLETE{Colors.END}")
    print(f"{'='*60}")
    print(f"\nAPI docs: {API_URL}/docs")


if __name__ == "__main__":
    run_full_cycle()
