from django.db import DatabaseError, connection
from django.http import JsonResponse


def health_view(_request):
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
        db_ok = True
    except DatabaseError:
        db_ok = False

    return JsonResponse(
        {"ok": db_ok, "components": {"db": {"ok": db_ok}}},
        status=200 if db_ok else 503,
    )
