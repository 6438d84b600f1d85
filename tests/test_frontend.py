from pathlib import Path


def write_bundle(app):
    dist = Path(app.config["FRONTEND_DIST"])
    (dist / "index.html").write_text("<html>entry</html>")
    (dist / "assets").mkdir()
    (dist / "assets" / "app.js").write_text("console.log('app')")


def test_hello(client):
    resp = client.get("/api/hello")
    assert resp.status_code == 200
    assert resp.get_json() == {"message": "Hello from backend!"}


def test_static_asset(app, client):
    write_bundle(app)
    resp = client.get("/assets/app.js")
    assert resp.status_code == 200
    assert resp.data == b"console.log('app')"


def test_root_serves_entry_page(app, client):
    write_bundle(app)
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.data == b"<html>entry</html>"


def test_client_route_falls_back_to_entry_page(app, client):
    write_bundle(app)
    resp = client.get("/quiz/3/results")
    assert resp.status_code == 200
    assert resp.data == b"<html>entry</html>"


def test_missing_bundle(client):
    resp = client.get("/anything")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Frontend build not found"}


def test_cors_header(client):
    resp = client.get("/api/hello", headers={"Origin": "http://localhost:3000"})
    assert resp.headers["Access-Control-Allow-Origin"] in {"*", "http://localhost:3000"}


def test_cors_allows_any_origin(client):
    resp = client.get("/api/hello", headers={"Origin": "https://quiz.example.org"})
    assert resp.headers["Access-Control-Allow-Origin"] in {"*", "https://quiz.example.org"}
