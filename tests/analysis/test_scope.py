"""
Tests for local binding and callee resolution.
"""

from recoverlint.analysis.scope import (
  ClosureLiteral,
  RecoveryPrimitive,
  ResolvedDeclaration,
  Scope,
  Unresolved,
  resolve_callee,
)
from recoverlint.frontend.parser import iter_descendants

SOURCE = """
package app

import (
  "sync"
  w "example.com/app/worker"
)

type Server struct{}

func (srv *Server) Serve() {}

func helper() {}

func run(s Server, p *Server, n int, fn func()) {
  var v Server
  l := &Server{}
  nw := new(Server)
  c := func() {}
  var mu sync.Mutex
  for i, item := range []int{} {
    _, _ = i, item
  }
  helper()
  recover()
  fn()
  c()
  l.Serve()
  w.Start()
  mu.Lock()
  _, _, _, _ = s, p, v, nw
}
"""


def callee_nodes(declaration):
  return {
    n.child_by_field_name("function").text.decode(): n.child_by_field_name("function")
    for n in iter_descendants(declaration.body)
    if n.type == "call_expression"
  }


def test_scope_collects_types_and_closures(go_sources):
  src = go_sources(SOURCE)
  scope = Scope(src.decl("run"))
  assert scope.types["s"] == "Server"
  assert scope.types["p"] == "Server"
  assert scope.types["v"] == "Server"
  assert scope.types["l"] == "Server"
  assert scope.types["nw"] == "Server"
  assert "c" in scope.closures
  assert {"n", "fn", "i", "item", "mu"} <= scope.locals
  assert "mu" not in scope.types


def test_receiver_is_bound(go_sources):
  src = go_sources(SOURCE)
  scope = Scope(src.decl("Serve"))
  assert scope.types["srv"] == "Server"


def test_resolve_callee_variants(go_sources):
  src = go_sources(SOURCE)
  run = src.decl("run")
  scope = Scope(run)
  callees = callee_nodes(run)

  helper = resolve_callee(callees["helper"], scope, src.registry)
  assert isinstance(helper, ResolvedDeclaration)
  assert helper.declaration is src.decl("helper")

  assert isinstance(resolve_callee(callees["recover"], scope, src.registry), RecoveryPrimitive)
  assert isinstance(resolve_callee(callees["fn"], scope, src.registry), Unresolved)
  assert isinstance(resolve_callee(callees["c"], scope, src.registry), ClosureLiteral)

  method = resolve_callee(callees["l.Serve"], scope, src.registry)
  assert isinstance(method, ResolvedDeclaration)
  assert method.declaration is src.decl("Serve")

  # Imported package outside the source set, and a type outside the source set
  assert isinstance(resolve_callee(callees["w.Start"], scope, src.registry), Unresolved)
  assert isinstance(resolve_callee(callees["mu.Lock"], scope, src.registry), Unresolved)


def test_qualified_call_into_source_set(go_sources):
  src = go_sources(
    {
      "cmd/app/main.go": """
        package main

        import w "example.com/app/worker"

        func main() {
          w.Start()
        }
        """,
      "worker/worker.go": """
        package worker

        func Start() {
          defer func() { recover() }()
        }
        """,
    }
  )
  assert src.decl("main").imports == {"w": "example.com/app/worker"}
  assert src.analyze("main").is_safe


def test_import_outside_the_source_set_is_unresolved(go_sources):
  src = go_sources(
    {
      "cmd/app/main.go": """
        package main

        import "example.com/other/worker"

        func main() {
          worker.Start()
        }
        """,
      "internal/jobs/jobs.go": """
        package worker

        func Start() {
          defer recover()
        }
        """,
    }
  )
  main = src.decl("main")
  call = callee_nodes(main)["worker.Start"]
  assert isinstance(resolve_callee(call, Scope(main), src.registry), Unresolved)


def test_missing_callee_is_unresolved(go_sources):
  src = go_sources("package app\n\nfunc f() {}\n")
  result = resolve_callee(None, Scope(src.decl("f")), src.registry)
  assert result == Unresolved("missing callee")


def test_rebound_closure_keeps_every_literal(go_sources):
  src = go_sources(
    """
    package app

    func f(fast bool) {
      task := func() {
        defer recover()
      }
      if fast {
        task = func() {}
      }
      task()
    }
    """
  )
  f = src.decl("f")
  scope = Scope(f)
  assert len(scope.closures["task"]) == 2
  callee = resolve_callee(callee_nodes(f)["task"], scope, src.registry)
  assert isinstance(callee, ClosureLiteral)
  assert len(callee.nodes) == 2


def test_closure_also_bound_to_other_value_is_opaque(go_sources):
  src = go_sources(
    """
    package app

    func f(other func()) {
      task := func() {
        defer recover()
      }
      task = other
      task()
    }
    """
  )
  f = src.decl("f")
  scope = Scope(f)
  assert "task" in scope.opaque
  assert isinstance(resolve_callee(callee_nodes(f)["task"], scope, src.registry), Unresolved)
