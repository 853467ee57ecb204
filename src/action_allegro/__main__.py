from action_allegro.cli import main

raise SystemExit(main())
