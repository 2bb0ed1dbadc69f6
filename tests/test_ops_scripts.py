import os, sys, json, pathlib, subprocess

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SCAN_SKIP_DIRS = {'.git', '.venv', 'venv', '.tox', 'build', 'dist', '.pytest_cache', '__pycache__'}


def run(cmd, **kw):
    env = dict(os.environ)
    env.pop('DEBUG_DB', None)
    env.update(kw.pop('env', {}))
    proc = subprocess.run(cmd, capture_output=True, text=True, env=env, **kw)
    assert proc.returncode == 0, f"Command failed: {cmd}\n{proc.stdout}\n{proc.stderr}"
    return proc


def test_smoke_script():
    script = PROJECT_ROOT / 'scripts' / 'smoke_test.py'
    proc = run([sys.executable, str(script)], cwd=PROJECT_ROOT, env={'SMOKE_INCLUDE': '1'}, timeout=30)
    data = json.loads(proc.stdout.strip().splitlines()[-1])
    assert data.get('success') is True
    assert data['documents'] > 0


def test_config_dump():
    # Use module CLI invocation
    proc = run([sys.executable, '-m', 'mockdb.config', '--collection', 'Item'], cwd=PROJECT_ROOT,
               env={'MOCKDB_DEFAULT_LIMIT': '25'})
    data = json.loads(proc.stdout)
    assert 'config' in data and 'stats' in data
    assert data['config']['default_limit'] == 25
    assert data['stats']['collections'] == {'Item': 0}


def test_offline_runner():
    proc = run([sys.executable, str(PROJECT_ROOT / 'test_runner.py')], cwd=PROJECT_ROOT, timeout=60)
    assert json.loads(proc.stdout)['failures'] == 0


def test_secret_scan_no_obvious_tokens():
    # Simple heuristic: look for patterns like API_KEY= or bearer tokens (not exhaustive)
    suspicious = []
    for path in PROJECT_ROOT.rglob('*'):
        if path.is_dir() or path.suffix in {'.pyc', '.whl', '.gz', '.patch', '.diff'}:
            continue
        parts = path.relative_to(PROJECT_ROOT).parts
        if SCAN_SKIP_DIRS.intersection(parts) or any(p.endswith('.egg-info') for p in parts):
            continue
        if 'test_' in path.name:  # Skip test files to avoid false positives
            continue
        try:
            text = path.read_text(encoding='utf-8', errors='ignore')
        except OSError:
            continue
        if 'API_KEY=' in text or 'Bearer ' in text:
            suspicious.append(str(path))
    assert not suspicious, f"Potential secrets detected: {suspicious}"


def test_secret_scan_skips_build_and_env_dirs():
    assert {'.venv', 'build', 'dist'} <= SCAN_SKIP_DIRS
